"""
Email sending via Resend API for the notification engine.

Builds article notification emails and author status reports, and hands
them to Resend for delivery.
"""

import html
import os
from typing import Any, Dict, List, Optional

import resend

from config.settings import get_frontend_base_url, get_from_email
from models.article import Article, Author
from models.notification import RecipientResult


# Initialize Resend with API key from environment
resend.api_key = os.getenv('RESEND_API_KEY')

SENDER_NAME = os.getenv('NOTIFICATION_SENDER_NAME', 'Newsagent')


def send_email(
    to: List[str],
    subject: str,
    html_body: str,
    text_body: str,
    cc: Optional[List[str]] = None,
    bcc: Optional[List[str]] = None,
    reply_to: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Send a single email through Resend.

    Returns:
        Dictionary with 'success' (bool), 'email_id' (str if success), 'error' (str if failed)
    """
    if not to:
        return {'success': False, 'error': 'No destination addresses'}

    params: Dict[str, Any] = {
        "from": f"{SENDER_NAME} <{get_from_email()}>",
        "to": to,
        "subject": subject,
        "html": html_body,
        "text": text_body,
    }
    if cc:
        params["cc"] = cc
    if bcc:
        params["bcc"] = bcc
    if reply_to:
        params["reply_to"] = reply_to

    try:
        response = resend.Emails.send(params)
        return {
            'success': True,
            'email_id': response.get('id') if response else None
        }
    except Exception as e:
        return {
            'success': False,
            'error': str(e)
        }


def article_url(article: Article) -> str:
    return f"{get_frontend_base_url()}/article/{article.id}"


def build_article_subject(article: Article, prefix: Optional[str] = None) -> str:
    title = article.title or 'Untitled article'
    return f"{prefix.strip()} {title}" if prefix else title


def build_article_html(article: Article, sent_to: List[str]) -> str:
    """
    Build HTML email body for an article notification.

    Args:
        article: The article being announced
        sent_to: Shortnames of every recipient the article is going to

    Returns:
        HTML string
    """
    title = html.escape(article.title or 'Untitled article')
    body = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
            line-height: 1.6;
            color: #333;
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
        }}
        h1 {{
            color: #1e40af;
            font-size: 22px;
        }}
        .summary {{
            color: #374151;
            font-weight: 500;
        }}
        .footer {{
            margin-top: 30px;
            padding-top: 20px;
            border-top: 1px solid #e5e7eb;
            font-size: 12px;
            color: #6b7280;
        }}
    </style>
</head>
<body>
    <h1>{title}</h1>
"""
    if article.summary:
        body += f"""
    <p class="summary">{html.escape(article.summary)}</p>
"""
    if article.article:
        # Article bodies are stored as HTML by the composer
        body += f"""
    <div class="article">{article.article}</div>
"""
    body += f"""
    <p><a href="{article_url(article)}">View this article online</a></p>
"""
    if sent_to:
        body += f"""
    <div class="footer">This message was sent to: {html.escape(', '.join(sent_to))}</div>
"""
    body += """
</body>
</html>
"""
    return body


def build_article_text(article: Article, sent_to: List[str]) -> str:
    """Plain text counterpart of build_article_html()."""
    text = f"{article.title or 'Untitled article'}\n"
    text += "=" * 60 + "\n\n"
    if article.summary:
        text += f"{article.summary}\n\n"
    text += f"Read more: {article_url(article)}\n"
    if sent_to:
        text += f"\n---\nThis message was sent to: {', '.join(sent_to)}\n"
    return text


def send_author_status(
    author: Author, article: Article, method_name: str, results: List[RecipientResult]
) -> Dict[str, Any]:
    """
    Email an article's author the outcome of a notification run.

    Args:
        author: Article creator
        article: The article whose notification was processed
        method_name: Delivery method the results belong to
        results: Per-recipient delivery results

    Returns:
        Same shape as send_email()
    """
    if not author.email:
        return {'success': False, 'error': f'No email address for {author.fullname}'}

    subject = f"Notification status for '{article.title}'"

    rows_html = ""
    rows_text = ""
    for row in results:
        message = row.message or "No errors reported"
        rows_html += (
            f"<tr><td>{html.escape(row.name)}</td><td>{html.escape(row.state)}</td>"
            f"<td>{html.escape(message)}</td></tr>\n"
        )
        rows_text += f"- {row.name}: {row.state} ({message})\n"

    html_body = f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(subject)}</title></head>
<body>
    <p>Dear {html.escape(author.fullname)},</p>
    <p>The {html.escape(method_name)} notification for your article
       <strong>{html.escape(article.title)}</strong> has been processed:</p>
    <table>
        <tr><th>Recipient</th><th>Status</th><th>Message</th></tr>
        {rows_html}
    </table>
</body>
</html>
"""
    text_body = (
        f"Dear {author.fullname},\n\n"
        f"The {method_name} notification for your article '{article.title}' "
        f"has been processed:\n\n{rows_text}"
    )

    return send_email([author.email], subject, html_body, text_body)

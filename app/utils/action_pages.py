# app/utils/action_pages.py
"""
Small self-contained HTML pages returned to staff who click an email action link.
Every interpolated value is escaped; visitor fields come from an unauthenticated form.
"""

from datetime import datetime
from html import escape

_STYLES = {
    "success": ("linear-gradient(135deg, #28a745, #20c997)", "✅"),
    "info": ("linear-gradient(135deg, #17a2b8, #6f42c1)", "ℹ️"),
    "error": ("linear-gradient(135deg, #dc3545, #fd7e14)", "❌"),
}

_PAGE = """<!DOCTYPE html>
<html>
<head>
  <title>{title}</title>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta name="referrer" content="no-referrer">
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, sans-serif; margin: 0; padding: 20px; background: {background};
           min-height: 100vh; display: flex; align-items: center; justify-content: center; }}
    .container {{ max-width: 500px; background: white; padding: 40px; border-radius: 15px;
                 box-shadow: 0 10px 30px rgba(0,0,0,0.3); text-align: center; }}
    .icon {{ font-size: 4rem; margin-bottom: 20px; }}
    p {{ color: #666; font-size: 1.1rem; line-height: 1.6; }}
    .info-row {{ display: flex; justify-content: space-between; padding: 5px 0; border-bottom: 1px solid #eee; }}
    textarea {{ width: 100%; min-height: 100px; padding: 12px; box-sizing: border-box; }}
    .btn {{ padding: 12px 30px; border: none; border-radius: 8px; font-size: 16px; cursor: pointer;
           background: #dc3545; color: white; margin-top: 20px; }}
    .timestamp {{ color: #999; font-size: 0.9rem; margin-top: 30px; border-top: 1px solid #eee; padding-top: 20px; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="icon">{icon}</div>
    <h1>{title}</h1>
    {content}
    <div class="timestamp">{timestamp}</div>
  </div>
</body>
</html>"""


def _page(title: str, content: str, outcome: str) -> str:
    background, icon = _STYLES[outcome]
    return _PAGE.format(
        title=escape(title),
        background=background,
        icon=icon,
        content=content,
        timestamp=f"Generated at {datetime.utcnow():%Y-%m-%d %H:%M:%S} UTC",
    )


def render_result_page(title: str, message: str, outcome: str = "success") -> str:
    """outcome: success | info | error"""
    return _page(title, f"<p>{escape(message)}</p>", outcome)


def render_reject_form(visitor, action_url: str) -> str:
    """Optional-reason form that submits to the reject link."""
    rows = [
        ("Name", visitor.full_name),
        ("Company", visitor.company_name or "N/A"),
        ("Purpose", visitor.purpose_of_visit),
        ("Whom to Meet", visitor.meet_with),
        ("Date & Time", f"{visitor.scheduled_at:%Y-%m-%d %H:%M}" if visitor.scheduled_at else ""),
    ]
    details = "\n".join(
        f'<div class="info-row"><strong>{escape(label)}:</strong><span>{escape(str(value or ""))}</span></div>'
        for label, value in rows
    )
    form = (
        f"{details}\n"
        f'<form method="get" action="{escape(action_url, quote=True)}">\n'
        f'  <label for="reason">Reason for Rejection (Optional):</label>\n'
        f'  <textarea name="reason" id="reason" maxlength="1000"></textarea>\n'
        f'  <button type="submit" class="btn">Confirm Rejection</button>\n'
        f"</form>"
    )
    return _page("Reject Visitor Request", form, "error")

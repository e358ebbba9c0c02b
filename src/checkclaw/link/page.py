"""Consent page served by the listener in local-page mode."""

import json
from html import escape as html_escape

LINK_SCRIPT_URL = "https://cdn.plaid.com/link/v2/stable/link-initialize.js"

LINK_PAGE_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>
    body {{ font-family: -apple-system, sans-serif; display: flex; justify-content: center; align-items: center; height: 100vh; margin: 0; background: #f5f5f5; }}
    .container {{ text-align: center; }}
    h1 {{ color: #333; }}
    p {{ color: #666; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Connecting your bank...</h1>
    <p>The bank connection window will open automatically.</p>
  </div>
  <script src="{script_url}"></script>
  <script>
    function report(body, html) {{
      fetch('/callback', {{
        method: 'POST',
        headers: {{ 'Content-Type': 'application/json' }},
        body: JSON.stringify(body)
      }}).then(function () {{
        document.querySelector('.container').innerHTML = html;
      }});
    }}
    var handler = Plaid.create({{
      token: {token_js},
      onSuccess: function (public_token, metadata) {{
        report({{ public_token: public_token, metadata: metadata }},
          '<h1>&#10004; Bank connected!</h1><p>You can close this window.</p>');
      }},
      onExit: function (err) {{
        report({{ error: err ? err.error_message : 'cancelled' }},
          '<h1>Connection cancelled</h1><p>You can close this window.</p>');
      }}
    }});
    handler.open();
  </script>
</body>
</html>
"""


def build_link_page(link_token: str, title: str = "checkclaw - Connect Bank") -> str:
    """Render the consent page for link_token.

    The token is embedded as a JSON string literal with "</" broken up so a
    hostile value cannot close the script element.
    """
    token_js = json.dumps(link_token).replace("</", "<\\/")
    return LINK_PAGE_TEMPLATE.format(
        title=html_escape(title),
        script_url=LINK_SCRIPT_URL,
        token_js=token_js,
    )

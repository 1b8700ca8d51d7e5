"""Default HTML pages served by the local capture server."""

DEFAULT_SUCCESS_HTML = """<!doctype html>
<html>
  <head><meta charset="utf-8" /><title>Authorization complete</title></head>
  <body>
    <p>Authorization complete. You may close this window.</p>
  </body>
</html>
"""

DEFAULT_ERROR_HTML = """<!doctype html>
<html>
  <head><meta charset="utf-8" /><title>Authorization error</title></head>
  <body>
    <p>Authorization failed. You may close this window and try again.</p>
  </body>
</html>
"""

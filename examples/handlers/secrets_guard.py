"""Example handler: ask before writing files that look like they hold secrets."""

import json
import os
import re

_SECRET_RE = re.compile(r"(api[_-]?key|secret|password)\s*=", re.IGNORECASE)

content = os.environ.get("HOOKWARDEN_CONTENT", "")
path = os.environ.get("HOOKWARDEN_PATH", "")

if _SECRET_RE.search(content):
    action, message = "confirm", f"{os.path.basename(path)} looks like it contains credentials"
else:
    action, message = "allow", None

print(json.dumps({"result": {"action": action, "messages": [{"message": message}] if message else []}}))

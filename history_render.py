import json
import logging
from typing import Dict, List

from flask import render_template_string

logger = logging.getLogger(__name__)

HISTORY_TEMPLATE = """<html>
    <head>
        <style>
            body {
                background-color: #1c1e21;
            }

            #events {
                display: flex;
                flex-wrap: wrap;
            }

            pre {
                border: 1px solid #444950;
                color: #e4e6eb;
                padding: 22px;
                margin-left: 2em;
            }

            pre.error {
                border-color: #fa383e;
                color: #fa383e;
            }
        </style>
    </head>
    <body>
      <div id="events">
      {%- for block in blocks %}
        <pre{% if block.error %} class="error"{% endif %}>{{ block.text }}</pre>
      {%- endfor %}
      </div>
    </body>
</html>
"""


def _pretty(value) -> str:
    text = json.dumps(value, indent=2, ensure_ascii=False)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates cannot go out in a UTF-8 page; keep them escaped.
        text = json.dumps(value, indent=2)
    return text


def format_events(events: List[str]) -> List[Dict]:
    """Pretty-print each stored event; unparseable entries become error blocks."""
    blocks = []

    for index, raw in enumerate(events):
        try:
            pretty = _pretty(json.loads(raw))
        except (TypeError, ValueError):
            logger.warning("Stored event #%d is not valid JSON", index)
            shown = raw if isinstance(raw, str) else json.dumps(raw)
            blocks.append({"text": f"Invalid stored event:\n{shown}", "error": True})
            continue

        blocks.append({"text": pretty, "error": False})

    return blocks


def render_history(events: List[str]) -> str:
    return render_template_string(HISTORY_TEMPLATE, blocks=format_events(events))

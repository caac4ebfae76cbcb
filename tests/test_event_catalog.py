from __future__ import annotations

import re
import string
from pathlib import Path

from chanlogger.logs import logger as global_logger
from chanlogger.logs.event_catalog import EVENT_TEMPLATES

SOURCE_ROOT = Path(__file__).resolve().parents[1] / "chanlogger"
CALL_RE = re.compile(r'log_event\(\s*"([a-z_]+)",\s*"([a-z_]+)"')


def _fields(template: str) -> set[str]:
    return {
        name.split(".", 1)[0].split("[", 1)[0]
        for _, name, _, _ in string.Formatter().parse(template)
        if name
    }


def test_event_catalog_placeholders_renderable():
    failures: list[tuple[str, str, str]] = []
    for (domain, action), template in EVENT_TEMPLATES.items():
        dummy = dict.fromkeys(_fields(template), "x")
        try:
            template.format(**dummy)
        except (KeyError, IndexError, ValueError) as e:
            failures.append((domain, action, str(e)))
    assert not failures, f"Unrenderable templates: {failures[:5]} (total {len(failures)})"


def test_event_template_keys_lowercase():
    bad = [key for key in EVENT_TEMPLATES if key[0] != key[0].lower() or key[1] != key[1].lower()]
    assert not bad, f"Non-lowercase event keys: {bad}"


def test_every_logged_event_has_a_template():
    missing: set[tuple[str, str]] = set()
    for path in SOURCE_ROOT.rglob("*.py"):
        for domain, action in CALL_RE.findall(path.read_text(encoding="utf-8")):
            if (domain, action) not in EVENT_TEMPLATES:
                missing.add((domain, action))
    assert not missing, f"Events without template: {sorted(missing)}"


def test_logger_unknown_event_marks_derived(caplog):
    caplog.set_level(20)
    global_logger.log_event("nonexistent_domain", "some_event", foo=1)
    msgs = [r.getMessage() for r in caplog.records]
    assert any("nonexistent domain: some event" in m for m in msgs)

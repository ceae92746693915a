#!/usr/bin/env python3
"""Security & PII gate for source files.

Fails if:
- print( found in runtime code (src/**)
- A logger call line mentions a sensitive keyword without redaction
- A logger message is an f-string or %-formatted (context belongs in extra)
- A logger call passes extra= that does not go through safe_log_context

Customer phone numbers, names, message bodies and webhook signatures are
the data this service must never write to logs.

Usage:
    python scripts/gate_security_pii.py [DIR ...]
"""

import ast
import re
import sys
from pathlib import Path

# Keywords that must not appear in logger calls without redaction
SENSITIVE_KEYWORDS = (
    "payload",
    "request.body",
    "body_bytes",
    "request.json",
    "webhook",
    "message_text",
    "phone",
    "customer_name",
    "sender",
    "signature_header",
    "authorization",
)

PRINT_PATTERN = re.compile(r"\bprint\s*\(")

LOGGER_CALL_PATTERN = re.compile(
    r"logger\.(debug|info|warning|error|critical|exception)\s*\("
)

LOGGER_METHODS = frozenset({"debug", "info", "warning", "error", "critical", "exception"})

REDACTION_PATTERNS = (
    "safe_log_context",
    "redact_value",
    "redact_string",
)


def _check_lines(filepath: Path, lines: list[str]) -> list[str]:
    errors = []
    for lineno, line in enumerate(lines, start=1):
        stripped = line.lstrip()
        if stripped.startswith("#"):
            continue

        code_part = line.split("#")[0] if "#" in line else line
        if PRINT_PATTERN.search(code_part):
            errors.append(f"{filepath}:{lineno}: print() not allowed in runtime code")

        if LOGGER_CALL_PATTERN.search(line):
            line_lower = line.lower()
            has_redaction = any(rp in line for rp in REDACTION_PATTERNS)
            for keyword in SENSITIVE_KEYWORDS:
                if keyword in line_lower and not has_redaction:
                    errors.append(
                        f"{filepath}:{lineno}: logger call with '{keyword}' "
                        "must use redaction (safe_log_context/redact_value)"
                    )
    return errors


def _is_logger_call(node: ast.Call) -> bool:
    func = node.func
    return (
        isinstance(func, ast.Attribute)
        and func.attr in LOGGER_METHODS
        and isinstance(func.value, ast.Name)
        and func.value.id == "logger"
    )


def _is_redacted_extra(value: ast.expr) -> bool:
    """extra={"extra_fields": safe_log_context(...)} is the only accepted shape."""
    if not isinstance(value, ast.Dict):
        return False
    for key, item in zip(value.keys, value.values):
        if not (isinstance(key, ast.Constant) and key.value == "extra_fields"):
            return False
        if not (
            isinstance(item, ast.Call)
            and isinstance(item.func, ast.Name)
            and item.func.id == "safe_log_context"
        ):
            return False
    return True


def _check_calls(filepath: Path, tree: ast.AST) -> list[str]:
    errors = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call) or not _is_logger_call(node):
            continue

        if node.args:
            message = node.args[0]
            if isinstance(message, ast.JoinedStr) or len(node.args) > 1:
                errors.append(
                    f"{filepath}:{node.lineno}: logger message must be a constant; "
                    "pass context through extra=safe_log_context(...)"
                )

        for keyword in node.keywords:
            if keyword.arg == "extra" and not _is_redacted_extra(keyword.value):
                errors.append(
                    f"{filepath}:{node.lineno}: logger extra= must be "
                    '{"extra_fields": safe_log_context(...)}'
                )
    return errors


def check_file(filepath: Path) -> list[str]:
    """Check a single file for violations. Returns list of error messages."""
    try:
        content = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []

    errors = _check_lines(filepath, content.splitlines())
    try:
        tree = ast.parse(content, filename=str(filepath))
    except SyntaxError as e:
        errors.append(f"{filepath}:{e.lineno}: syntax error")
        return errors
    errors.extend(_check_calls(filepath, tree))
    return errors


def check_tree(src_dir: Path) -> list[str]:
    """Check every .py file under src_dir."""
    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))
    return all_errors


def main(argv: list[str]) -> int:
    """Run gate check on the given directories (default: src/swadeshi)."""
    if argv:
        dirs = [Path(arg) for arg in argv]
    else:
        dirs = [Path(__file__).resolve().parent.parent / "src" / "swadeshi"]

    all_errors: list[str] = []
    for src_dir in dirs:
        if not src_dir.is_dir():
            sys.stderr.write(f"Error: {src_dir} is not a directory\n")
            return 1
        all_errors.extend(check_tree(src_dir))

    if all_errors:
        sys.stderr.write("Security gate FAILED - Security/PII violations found:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("Security gate PASSED - No security/PII violations found\n")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))

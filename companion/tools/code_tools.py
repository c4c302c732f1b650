"""Static, deterministic code inspection tools.

They never execute user code. Findings are pattern based and meant as
grounding for the model's own explanation, not as a linter replacement.
"""

from __future__ import annotations

import re
from typing import Any, Literal, Mapping, Sequence

from pydantic import BaseModel, Field

from .base import InvocationMetadata, Tool, tool

FocusArea = Literal["bugs", "performance", "security", "style", "all"]

_LANGUAGE_SIGNATURES: Sequence[tuple[str, re.Pattern[str]]] = (
    ("python", re.compile(r"^\s*(def |class \w+.*:|import \w+|from \w+ import)|print\(|self\.", re.M)),
    ("typescript", re.compile(r":\s*(string|number|boolean)\b|interface \w+\s*\{|<\w+>\(")),
    ("javascript", re.compile(r"\b(const|let|var)\s+\w+\s*=|=>|console\.log|function\s+\w*\(")),
    ("java", re.compile(r"public\s+(static\s+)?(class|void)|System\.out\.println")),
    ("cpp", re.compile(r"#include\s*<|std::|cout\s*<<")),
    ("c", re.compile(r"#include\s*<stdio\.h>|printf\(|malloc\(")),
    ("go", re.compile(r"^package \w+|func \w+\(|fmt\.Print", re.M)),
    ("rust", re.compile(r"\bfn \w+\(|let mut |println!\(")),
    ("sql", re.compile(r"\b(SELECT|INSERT INTO|UPDATE|DELETE FROM)\b", re.I)),
    ("html", re.compile(r"<(div|html|body|span|p)\b", re.I)),
)

# Each rule: (id, focus area, severity, languages or None for any, pattern, message, suggestion)
_RULES: Sequence[tuple[str, str, str, frozenset[str] | None, re.Pattern[str], str, str]] = (
    (
        "bare-except", "bugs", "medium", frozenset({"python"}),
        re.compile(r"^\s*except\s*:", re.M),
        "Bare 'except:' swallows every exception, including KeyboardInterrupt",
        "Catch the specific exception types you expect",
    ),
    (
        "none-equality", "style", "low", frozenset({"python"}),
        re.compile(r"[!=]=\s*None\b"),
        "Comparison to None with == or !=",
        "Use 'is None' / 'is not None'",
    ),
    (
        "mutable-default", "bugs", "medium", frozenset({"python"}),
        re.compile(r"def \w+\([^)]*=\s*(\[\]|\{\})"),
        "Mutable default argument is shared between calls",
        "Default to None and create the list or dict inside the function",
    ),
    (
        "loose-equality", "bugs", "low", frozenset({"javascript", "typescript"}),
        re.compile(r"[^=!]==[^=]"),
        "Loose equality '==' performs type coercion",
        "Prefer strict equality '==='",
    ),
    (
        "var-declaration", "style", "low", frozenset({"javascript", "typescript"}),
        re.compile(r"\bvar\s+\w+"),
        "'var' is function scoped and easy to misuse",
        "Use 'const' or 'let'",
    ),
    (
        "eval-call", "security", "high", None,
        re.compile(r"\beval\s*\("),
        "eval() executes arbitrary code",
        "Parse the input explicitly instead of evaluating it",
    ),
    (
        "sql-concatenation", "security", "high", None,
        re.compile(r"(SELECT|INSERT|UPDATE|DELETE)[^;\n]*['\"]\s*\+\s*\w+|f['\"](SELECT|INSERT|UPDATE|DELETE)", re.I),
        "SQL built by string concatenation is open to injection",
        "Use parameterized queries",
    ),
    (
        "hardcoded-secret", "security", "high", None,
        re.compile(r"(password|secret|api_?key|token)\s*[:=]\s*['\"][^'\"]{4,}['\"]", re.I),
        "Credential appears to be hard-coded",
        "Load secrets from configuration or the environment",
    ),
    (
        "nested-loops", "performance", "medium", None,
        re.compile(r"\bfor\b[^\n]*\n(?:[ \t]+[^\n]*\n)*?[ \t]+for\b"),
        "Nested loops suggest quadratic running time",
        "Consider a dictionary or set lookup to remove the inner loop",
    ),
    (
        "string-concat-in-loop", "performance", "low", frozenset({"python", "java"}),
        re.compile(r"\bfor\b[^\n]*\n(?:[ \t]+[^\n]*\n)*?[ \t]+\w+\s*\+=\s*['\"]"),
        "String concatenation inside a loop",
        "Collect parts in a list and join once (StringBuilder in Java)",
    ),
    (
        "infinite-loop", "bugs", "medium", None,
        re.compile(r"while\s*\(?\s*(True|true|1)\s*\)?\s*[:{]"),
        "Unconditional loop",
        "Make sure every path eventually breaks or returns",
    ),
)

_ERROR_HINTS: Sequence[tuple[re.Pattern[str], str, str]] = (
    (re.compile(r"NameError|is not defined|ReferenceError", re.I), "undefined-name",
     "A name is used before it is defined or it is misspelled. Check spelling, imports and scope."),
    (re.compile(r"TypeError.*(NoneType|undefined|null)|Cannot read propert", re.I), "null-access",
     "A value is None/undefined where an object was expected. Trace where it was assigned."),
    (re.compile(r"IndexError|out of (range|bounds)|ArrayIndexOutOfBounds", re.I), "index-range",
     "An index exceeds the collection size. Check loop bounds and off-by-one errors."),
    (re.compile(r"KeyError", re.I), "missing-key",
     "A dictionary key does not exist. Use .get() or check membership first."),
    (re.compile(r"SyntaxError|unexpected token|IndentationError", re.I), "syntax",
     "The parser rejected the code. Look for unbalanced brackets, quotes or indentation near the reported line."),
    (re.compile(r"NullPointerException", re.I), "null-access",
     "An object reference is null. Initialize it or guard the call."),
    (re.compile(r"Segmentation fault|SIGSEGV", re.I), "memory",
     "Invalid memory access. Check pointer initialization and array bounds."),
    (re.compile(r"RecursionError|Maximum call stack|StackOverflow", re.I), "recursion",
     "Recursion never reaches its base case. Verify the base condition and that arguments shrink."),
    (re.compile(r"ZeroDivisionError|divide by zero", re.I), "division",
     "A divisor is zero. Validate the denominator before dividing."),
    (re.compile(r"ImportError|ModuleNotFoundError|Cannot find module", re.I), "import",
     "A module cannot be found. Check the package is installed and the import path is right."),
)

_FUNCTION_PATTERNS: Mapping[str, re.Pattern[str]] = {
    "python": re.compile(r"^\s*(?:async\s+)?def\s+(\w+)", re.M),
    "javascript": re.compile(r"function\s+(\w+)|(?:const|let)\s+(\w+)\s*=\s*(?:async\s*)?\([^)]*\)\s*=>"),
    "typescript": re.compile(r"function\s+(\w+)|(?:const|let)\s+(\w+)\s*=\s*(?:async\s*)?\([^)]*\)\s*=>"),
    "java": re.compile(r"(?:public|private|protected)\s+(?:static\s+)?\w+\s+(\w+)\s*\("),
    "go": re.compile(r"func\s+(\w+)\s*\("),
    "rust": re.compile(r"fn\s+(\w+)\s*\("),
}
_CLASS_PATTERN = re.compile(r"\b(?:class|struct|interface)\s+(\w+)")


def detect_code_language(code: str) -> str | None:
    """Best-effort guess of the language of ``code``; ``None`` when nothing matches."""
    if not code or not code.strip():
        return None
    fenced = re.search(r"```(\w+)", code)
    if fenced:
        return fenced.group(1).lower()
    for language, pattern in _LANGUAGE_SIGNATURES:
        if pattern.search(code):
            return language
    return None


def _line_of(code: str, position: int) -> int:
    return code.count("\n", 0, position) + 1


def _metrics(code: str) -> dict[str, Any]:
    lines = code.splitlines()
    non_blank = [line for line in lines if line.strip()]
    comments = [line for line in non_blank if line.lstrip().startswith(("#", "//", "/*", "*", "--"))]
    indents = [len(line) - len(line.lstrip(" \t")) for line in non_blank]
    return {
        "lines": len(lines),
        "non_blank_lines": len(non_blank),
        "comment_lines": len(comments),
        "longest_line": max((len(line) for line in lines), default=0),
        "max_indent": max(indents, default=0),
        "todo_count": len(re.findall(r"\b(TODO|FIXME|XXX)\b", code)),
    }


def find_issues(code: str, language: str | None, focus: Sequence[str] = ("all",)) -> list[dict[str, Any]]:
    check_all = "all" in focus
    issues: list[dict[str, Any]] = []
    for rule_id, area, severity, languages, pattern, message, suggestion in _RULES:
        if not check_all and area not in focus:
            continue
        if languages is not None and language not in languages:
            continue
        match = pattern.search(code)
        if match is None:
            continue
        issues.append(
            {
                "rule": rule_id,
                "type": area,
                "severity": severity,
                "line": _line_of(code, match.start()),
                "message": message,
                "suggestion": suggestion,
            }
        )
    return issues


class AnalyzeCodeArgs(BaseModel):
    code: str = Field(..., min_length=1, description="The code snippet to analyze")
    language: str | None = Field(None, description="Programming language; detected when omitted")
    focus_areas: list[FocusArea] = Field(default_factory=lambda: ["all"])


class DebugCodeArgs(BaseModel):
    code: str = Field(..., min_length=1, description="The problematic code")
    error_message: str | None = Field(None, description="Error message or traceback, if available")
    expected_behavior: str | None = Field(None, description="What the code should do")
    language: str | None = None


class ExplainCodeArgs(BaseModel):
    code: str = Field(..., min_length=1, description="The code to explain")
    language: str | None = None
    detail_level: Literal["overview", "detailed"] = Field("detailed")


def build_code_tools() -> list[Tool]:
    @tool(
        "analyze_code",
        "Statically inspect a code snippet for likely bugs, performance, security and style issues.",
        AnalyzeCodeArgs,
    )
    def analyze_code(args: AnalyzeCodeArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        language = (args.language or detect_code_language(args.code) or "unknown").lower()
        issues = find_issues(args.code, language, args.focus_areas)
        penalty = sum({"high": 2.0, "medium": 1.0, "low": 0.5}[issue["severity"]] for issue in issues)
        score = max(0.0, 10.0 - penalty)
        return {
            "success": True,
            "language": language,
            "metrics": _metrics(args.code),
            "issues": issues,
            "score": score,
            "message": f"Code analysis complete. Found {len(issues)} potential issue(s); score {score:.1f}/10.",
        }

    @tool(
        "debug_code",
        "Match an error message and the code against common failure patterns to suggest where to look.",
        DebugCodeArgs,
    )
    def debug_code(args: DebugCodeArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        language = (args.language or detect_code_language(args.code) or "unknown").lower()
        haystack = args.error_message or ""
        hints = [
            {"category": category, "hint": hint}
            for pattern, category, hint in _ERROR_HINTS
            if haystack and pattern.search(haystack)
        ]
        line_match = re.search(r"line (\d+)", haystack, re.I)
        issues = find_issues(args.code, language, ("bugs",))
        steps = [
            "Reproduce the failure with the smallest possible input.",
            "Read the error from the bottom of the traceback up to the first line in your own code.",
        ]
        if args.expected_behavior:
            steps.append(f"Compare the actual result with the expected behavior: {args.expected_behavior}")
        steps.append("Add a print or breakpoint just before the failing line and inspect the values.")
        found = len(hints) + len(issues)
        return {
            "success": True,
            "language": language,
            "error_line": int(line_match.group(1)) if line_match else None,
            "hints": hints,
            "suspicious_patterns": issues,
            "debugging_steps": steps,
            "message": f"Found {found} lead(s) to investigate." if found else "No known pattern matched; follow the debugging steps.",
        }

    @tool(
        "explain_code",
        "Outline the structure of a code snippet: functions, classes, loops and branches.",
        ExplainCodeArgs,
    )
    def explain_code(args: ExplainCodeArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        language = (args.language or detect_code_language(args.code) or "unknown").lower()
        function_pattern = _FUNCTION_PATTERNS.get(language)
        functions: list[str] = []
        if function_pattern is not None:
            for match in function_pattern.finditer(args.code):
                name = next((group for group in match.groups() if group), None)
                if name:
                    functions.append(name)
        structure = {
            "functions": functions,
            "classes": _CLASS_PATTERN.findall(args.code),
            "loops": len(re.findall(r"\b(for|while)\b", args.code)),
            "conditionals": len(re.findall(r"\b(if|elif|else if|switch|match)\b", args.code)),
            "returns": len(re.findall(r"\breturn\b", args.code)),
        }
        result: dict[str, Any] = {
            "success": True,
            "language": language,
            "structure": structure,
            "message": (
                f"{language} snippet with {len(functions)} function(s), {len(structure['classes'])} class(es), "
                f"{structure['loops']} loop(s) and {structure['conditionals']} branch(es)."
            ),
        }
        if args.detail_level == "detailed":
            result["metrics"] = _metrics(args.code)
        return result

    return [analyze_code, debug_code, explain_code]

# -*- coding: utf-8 -*-
"""
Separator hierarchies per document type, most specific first.

The chunker tries the first separator, and recurses with the rest for any
part that is still too long. A " " entry means "pack by token count"; an
empty string means "split into characters".
"""

from __future__ import annotations

from typing import Dict, List, Optional

DEFAULT_SEPARATORS: List[str] = ["\n\n", "\n", " ", ""]

_TAIL = ["\n\n", "\n", " "]

_C_LIKE = [
    "// LLM-REGION",
    "/* LLM-REGION",
    "/** LLM-REGION",
    "\nclass ",
    "\npublic ",
    "\nprotected ",
    "\nprivate ",
    "\nstatic ",
    "\nif ",
    "\nfor ",
    "\nwhile ",
    "\nswitch ",
    "\ncase ",
] + _TAIL

_JS = [
    "// LLM-REGION",
    "/* LLM-REGION",
    "/** LLM-REGION",
    "\nclass ",
    "\nfunction ",
    "\nconst ",
    "\nlet ",
    "\nvar ",
    "\nif ",
    "\nfor ",
    "\nwhile ",
    "\nswitch ",
    "\ncase ",
    "\ndefault ",
] + _TAIL

_PYTHON = ["\nclass ", "\ndef ", "\n\tdef ", "\n    def "] + _TAIL

_MARKDOWN = [
    "\n## ",
    "\n### ",
    "\n#### ",
    "\n##### ",
    "\n###### ",
    "```\n\n",
    "\n\n***\n\n",
    "\n\n---\n\n",
    "\n\n___\n\n",
    "<table>",
] + _TAIL

SEPARATORS: Dict[str, List[str]] = {
    "cpp": ["\nclass ", "\nvoid ", "\nint ", "\nfloat ", "\ndouble ",
            "\nif ", "\nfor ", "\nwhile ", "\nswitch ", "\ncase "] + _TAIL,
    "go": ["\nfunc ", "\nvar ", "\nconst ", "\ntype ",
           "\nif ", "\nfor ", "\nswitch ", "\ncase "] + _TAIL,
    "java": _C_LIKE,
    "c#": _C_LIKE,
    "csharp": _C_LIKE,
    "cs": _C_LIKE,
    "ts": _C_LIKE,
    "tsx": _C_LIKE,
    "typescript": _C_LIKE,
    "js": _JS,
    "jsx": _JS,
    "mjs": _JS,
    "javascript": _JS,
    "php": ["\nfunction ", "\nclass ", "\nif ", "\nforeach ", "\nwhile ",
            "\ndo ", "\nswitch ", "\ncase "] + _TAIL,
    "proto": ["\nmessage ", "\nservice ", "\nenum ", "\noption ",
              "\nimport ", "\nsyntax "] + _TAIL,
    "python": _PYTHON,
    "py": _PYTHON,
    "rst": ["\n===\n", "\n---\n", "\n***\n", "\n.. "] + _TAIL,
    "ruby": ["\ndef ", "\nclass ", "\nif ", "\nunless ", "\nwhile ", "\nfor ",
             "\ndo ", "\nbegin ", "\nrescue "] + _TAIL,
    "rust": ["\nfn ", "\nconst ", "\nlet ", "\nif ", "\nwhile ", "\nfor ",
             "\nloop ", "\nmatch "] + _TAIL,
    "scala": ["\nclass ", "\nobject ", "\ndef ", "\nval ", "\nvar ", "\nif ",
              "\nfor ", "\nwhile ", "\nmatch ", "\ncase "] + _TAIL,
    "swift": ["\nfunc ", "\nclass ", "\nstruct ", "\nenum ", "\nif ", "\nfor ",
              "\nwhile ", "\ndo ", "\nswitch ", "\ncase "] + _TAIL,
    "md": _MARKDOWN,
    "markdown": _MARKDOWN,
    "latex": [
        "\n\\chapter{",
        "\n\\section{",
        "\n\\subsection{",
        "\n\\subsubsection{",
        "\n\\begin{enumerate}",
        "\n\\begin{itemize}",
        "\n\\begin{description}",
        "\n\\begin{list}",
        "\n\\begin{quote}",
        "\n\\begin{quotation}",
        "\n\\begin{verse}",
        "\n\\begin{verbatim}",
        "\n\\begin{align}",
        "$$",
        "$",
    ] + _TAIL,
    "html": [
        "<body>", "<div>", "<p>", "<br>", "<li>",
        "<h1>", "<h2>", "<h3>", "<h4>", "<h5>", "<h6>",
        "<span>", "<table>", "<tr>", "<td>", "<th>", "<ul>", "<ol>",
        "<header>", "<footer>", "<nav>", "<head>", "<style>", "<script>",
        "<meta>", "<title>", " ",
    ],
    "sol": ["\npragma ", "\nusing ", "\ncontract ", "\ninterface ", "\nlibrary ",
            "\nconstructor ", "\ntype ", "\nfunction ", "\nevent ", "\nmodifier ",
            "\nerror ", "\nstruct ", "\nenum ", "\nif ", "\nfor ", "\nwhile ",
            "\ndo while ", "\nassembly "] + _TAIL,
}


def normalize_doc_type(doc_type: Optional[str]) -> Optional[str]:
    """'.PY' -> 'py'; empty / 'none' -> None."""
    if not doc_type:
        return None
    value = doc_type.strip().lower().lstrip(".")
    if not value or value == "none":
        return None
    return value


def get_separators(doc_type: Optional[str]) -> List[str]:
    """Return a copy of the separator list for `doc_type` (default table if unknown)."""
    key = normalize_doc_type(doc_type)
    return list(SEPARATORS.get(key, DEFAULT_SEPARATORS)) if key else list(DEFAULT_SEPARATORS)

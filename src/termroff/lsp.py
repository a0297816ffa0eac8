"""Minimal LSP server for man-page sources: diagnostics only."""

from __future__ import annotations

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from termroff.errors import InterpretError
from termroff.interpreter import Interpreter
from termroff.layout import DEFAULT_COLUMNS, LayoutEngine
from termroff.lexer import tokenize

server = LanguageServer("termroff-lsp", "0.1.0", text_document_sync_kind=TextDocumentSyncKind.Full)


def _range(line: int, column: int, length: int) -> Range:
    """Convert a 1-based line/column into a 0-based LSP range."""
    return Range(
        start=Position(line=line - 1, character=column - 1),
        end=Position(line=line - 1, character=column - 1 + max(1, length)),
    )


def _validate(ls: LanguageServer, uri: str) -> None:
    """Run the termroff pipeline and publish diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    source = doc.source
    diagnostics: list[Diagnostic] = []

    interpreter = Interpreter(layout=LayoutEngine(DEFAULT_COLUMNS), source=source)
    try:
        interpreter.parse(tokenize(source))
    except InterpretError as exc:
        if exc.token is not None:
            rng = _range(exc.token.line, exc.token.column, len(exc.token.value))
        else:
            last_line = max(1, len(source.splitlines()))
            rng = _range(last_line, 1, 1)
        diagnostics.append(
            Diagnostic(
                range=rng,
                message=exc.message,
                severity=DiagnosticSeverity.Error,
                source="termroff",
            )
        )

    for warning in interpreter.warnings:
        diagnostics.append(
            Diagnostic(
                range=_range(warning.line, warning.column, 1),
                message=warning.message,
                severity=DiagnosticSeverity.Warning,
                source="termroff",
            )
        )

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()

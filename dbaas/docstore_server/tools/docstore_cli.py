"""
Admin CLI for the document store.

Commands:
- db create|get|list|rename|delete: database lifecycle
- doc get|put|delete: single documents
- batch: several document operations in one transaction
- query / count: filter DSL queries

Usage:
    docstore db create inventory
    docstore doc put inventory bolt-1 --json '{"name": "bolt", "shelfId": "s1"}'
    docstore query inventory --filters '{"name": {"in": ["bolt", "nut"]}}' --limit 10
    docstore batch inventory --json '[{"op": "delete", "id": "bolt-1", "version": "12"}]'

Invariants:
    - Results are printed as JSON on stdout
    - Domain errors are printed as JSON on stderr with exit code 1
    - Unparseable JSON arguments exit with code 2

How to change safely:
    - Add new commands, don't change the output of existing ones
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

import simplejson

from ..app import DocStoreApp
from ..errors import DocStoreError, ValidationError
from ..json_util import read_json_string

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


class UsageError(Exception):
    """A command line argument could not be parsed."""


def _dumps(value: Any, **kwargs: Any) -> str:
    return simplejson.dumps(value, ensure_ascii=False, use_decimal=True, allow_nan=False, **kwargs)


class DocStoreCLI:
    """Maps parsed command line arguments onto DocStoreApp calls.

    Example:
        >>> cli = DocStoreCLI(app)
        >>> cli.run(["db", "create", "inventory"])
        0
    """

    def __init__(self, app: DocStoreApp, out=None, err=None) -> None:
        self.app = app
        self.out = out or sys.stdout
        self.err = err or sys.stderr

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(prog="docstore", description="Document store admin tool")
        commands = parser.add_subparsers(dest="command", required=True)

        db = commands.add_parser("db", help="Manage databases")
        db_commands = db.add_subparsers(dest="action", required=True)
        db_commands.add_parser("list", help="List databases")
        for action in ("create", "get"):
            sub = db_commands.add_parser(action)
            sub.add_argument("name")
        rename = db_commands.add_parser("rename")
        rename.add_argument("name")
        rename.add_argument("--version", required=True)
        rename.add_argument("--new-name", required=True)
        delete = db_commands.add_parser("delete")
        delete.add_argument("name")
        delete.add_argument("--version", required=True)

        doc = commands.add_parser("doc", help="Manage documents")
        doc_commands = doc.add_subparsers(dest="action", required=True)
        get = doc_commands.add_parser("get")
        get.add_argument("database")
        get.add_argument("id")
        put = doc_commands.add_parser("put")
        put.add_argument("database")
        put.add_argument("id")
        put.add_argument("--json", required=True, help="Document body, '-' reads stdin")
        doc_delete = doc_commands.add_parser("delete")
        doc_delete.add_argument("database")
        doc_delete.add_argument("id")
        doc_delete.add_argument("--version", required=True)

        batch = commands.add_parser("batch", help="Apply operations in one transaction")
        batch.add_argument("database")
        batch.add_argument("--json", required=True, help="List of operations, '-' reads stdin")

        query = commands.add_parser("query", help="Query documents")
        query.add_argument("database")
        query.add_argument("--filters")
        query.add_argument("--limit", type=int)
        query.add_argument("--offset", type=int)

        count = commands.add_parser("count", help="Count documents")
        count.add_argument("database")
        count.add_argument("--filters")

        return parser

    def _read_json(self, text: str | None) -> Any:
        if text is None:
            return None
        if text == "-":
            text = sys.stdin.read()
        try:
            return read_json_string(text)
        except ValueError as e:
            raise UsageError(f"invalid JSON argument: {e}") from e

    def _dispatch(self, args: argparse.Namespace) -> Any:
        if args.command == "db":
            if args.action == "list":
                return self.app.list_databases()
            if args.action == "create":
                return self.app.create_database(args.name)
            if args.action == "get":
                return self.app.get_database(args.name)
            if args.action == "rename":
                return self.app.rename_database(args.name, args.version, args.new_name)
            self.app.delete_database(args.name, args.version)
            return {}

        if args.command == "doc":
            if args.action == "get":
                return self.app.get_document(args.database, args.id)
            if args.action == "put":
                version = self.app.put_document(args.database, args.id, self._read_json(args.json))
                return {"id": args.id, "version": version}
            self.app.delete_document(args.database, args.id, args.version)
            return {}

        if args.command == "batch":
            operations = self._read_json(args.json)
            if not isinstance(operations, list):
                raise ValidationError("operations must be a JSON array")
            return self.app.perform_operations(args.database, operations)

        if args.command == "query":
            return self.app.query_documents(
                args.database, self._read_json(args.filters), args.limit, args.offset
            )

        return {"count": self.app.count_documents(args.database, self._read_json(args.filters))}

    def run(self, argv: list[str] | None = None) -> int:
        """Run one command.

        Returns:
            Process exit code
        """
        args = self.build_parser().parse_args(argv)
        try:
            result = self._dispatch(args)
        except DocStoreError as e:
            logger.debug("Command failed", extra={"code": e.code, "error": e.message})
            self.err.write(_dumps(e.to_dict()) + "\n")
            return EXIT_ERROR
        except UsageError as e:
            self.err.write(_dumps({"code": "USAGE", "message": str(e)}) + "\n")
            return EXIT_USAGE

        self.out.write(_dumps(result, indent=2) + "\n")
        return EXIT_OK

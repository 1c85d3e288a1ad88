# cli.py
"""
Command-line entry point.

Connection parameters come from MONGO_* environment variables (loaded
from a .env file when one is present) and can be overridden per flag.
"""

import argparse
import logging
import os
import sys
from typing import Callable, Dict, List, Optional

from pymongo.errors import PyMongoError

from .config import DEFAULT_ENV_FILE, MongoSettings, load_env_file
from .documents import dump_documents, parse_document
from .errors import DocumentError, MongoToolkitError
from .import_json import COMPLETED_DIR_NAME, DEFAULT_EXECUTABLE, MongoImporter
from .logging_setup import setup_logging
from .mongodb_library import MongoDBConnection

logger = logging.getLogger(__name__)


def add_connection_args(parser: argparse.ArgumentParser):
    """
    Adds MongoDB connection arguments to an ArgumentParser. Each one
    overrides the matching MONGO_* environment variable.
    """
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="MongoDB host, e.g. 'localhost:27017' (env: MONGO_HOST).",
    )
    parser.add_argument(
        "--user",
        type=str,
        default=None,
        help="Username for database authentication (env: MONGO_USER).",
    )
    parser.add_argument(
        "--password",
        type=str,
        default=None,
        help="Password for database authentication (env: MONGO_PASSWORD).",
    )
    parser.add_argument(
        "--database",
        type=str,
        default=None,
        help="Database name, also the auth source (env: MONGO_DATABASE).",
    )
    parser.add_argument(
        "--collection",
        type=str,
        default=None,
        help="Collection name (env: MONGO_COLLECTION).",
    )


def build_parser() -> argparse.ArgumentParser:
    """
    Sets up the ArgumentParser with the common options and one subparser
    per command.
    """
    parser = argparse.ArgumentParser(
        prog="mongo-toolkit",
        description="MongoDB collection CRUD and JSON bulk import tool.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging for more verbose output.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file (rotated at 10MB).",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=DEFAULT_ENV_FILE,
        help="dotenv file to load MONGO_* variables from (default: .env).",
    )
    add_connection_args(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.required = True

    find_parser = subparsers.add_parser(
        "find-documents", help="Find documents in the collection."
    )
    find_parser.add_argument(
        "--query",
        type=json_document,
        default="{}",
        help='JSON string of the query (e.g., \'{"ja": "東京都"}\')',
    )

    exists_parser = subparsers.add_parser(
        "find-key-exists", help="Find documents that have (or lack) a key."
    )
    exists_parser.add_argument(
        "--key", type=str, required=True, help="Key to test for."
    )
    exists_parser.add_argument(
        "--missing",
        action="store_true",
        help="Match documents where the key does NOT exist.",
    )

    insert_parser = subparsers.add_parser(
        "insert-document", help="Insert a document into the collection."
    )
    insert_parser.add_argument(
        "--data",
        type=json_document,
        required=True,
        help='JSON string of the document to insert (e.g., \'{"name": "test"}\')',
    )
    _add_dry_run(insert_parser)

    update_parser = subparsers.add_parser(
        "update-documents", help="Update documents in the collection."
    )
    update_parser.add_argument(
        "--query",
        type=json_document,
        required=True,
        help='JSON string of the filter query (e.g., \'{"name": "old"}\')',
    )
    update_parser.add_argument(
        "--update",
        type=json_document,
        required=True,
        help='JSON string of the update operation (e.g., \'{"$set": {"name": "new"}}\')',
    )
    update_parser.add_argument(
        "--upsert",
        action="store_true",
        help="Create a new document if no document matches the query.",
    )
    _add_dry_run(update_parser)

    delete_parser = subparsers.add_parser(
        "delete-documents", help="Delete documents from the collection."
    )
    delete_parser.add_argument(
        "--query",
        type=json_document,
        required=True,
        help='JSON string of the query to identify the documents to delete.',
    )
    _add_dry_run(delete_parser)

    import_parser = subparsers.add_parser(
        "import-json",
        help="Import every JSON array file in a directory with mongoimport.",
    )
    import_parser.add_argument(
        "--input-dir",
        type=str,
        default="./input_data",
        help="Directory to scan recursively (default: ./input_data).",
    )
    import_parser.add_argument(
        "--extension",
        type=str,
        default="json",
        help="Extension of the files to import, case-insensitive (default: json).",
    )
    import_parser.add_argument(
        "--completed-dir",
        type=str,
        default=None,
        help=f"Where imported files are moved (default: <input-dir>/{COMPLETED_DIR_NAME}).",
    )
    import_parser.add_argument(
        "--executable",
        type=str,
        default=DEFAULT_EXECUTABLE,
        help="mongoimport binary to run (default: mongoimport).",
    )
    import_parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace files of the same name already in the completed directory.",
    )
    import_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for each mongoimport run (default: no limit).",
    )

    return parser


def json_document(text: str):
    """argparse type for JSON document arguments."""
    try:
        return parse_document(text)
    except DocumentError as e:
        raise argparse.ArgumentTypeError(e.message) from e


def _add_dry_run(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the write operation but don't execute it.",
    )


def settings_from_args(args: argparse.Namespace) -> MongoSettings:
    """Loads the env file, then applies command-line overrides."""
    load_env_file(args.env_file, required=False)
    environ_settings = _env_with_overrides(args)
    return MongoSettings.from_env(environ_settings)


def _env_with_overrides(args: argparse.Namespace) -> Dict[str, str]:
    environ = dict(os.environ)
    overrides = {
        "MONGO_HOST": args.host,
        "MONGO_USER": args.user,
        "MONGO_PASSWORD": args.password,
        "MONGO_DATABASE": args.database,
        "MONGO_COLLECTION": args.collection,
    }
    environ.update({key: value for key, value in overrides.items() if value is not None})
    return environ


# --- commands ---

def cmd_find_documents(args: argparse.Namespace, conn: MongoDBConnection):
    query = args.query
    documents = conn.fetch_all(query)
    logger.info(
        "Found %d documents in collection '%s' with query %s.",
        len(documents),
        conn.collection_name,
        query,
    )
    print(dump_documents(documents))


def cmd_find_key_exists(args: argparse.Namespace, conn: MongoDBConnection):
    cursor = conn.find_key_exists(args.key, not args.missing)
    with cursor:
        documents = list(cursor)
    logger.info(
        "Found %d documents where '%s' %s.",
        len(documents),
        args.key,
        "is missing" if args.missing else "exists",
    )
    print(dump_documents(documents))


def cmd_insert_document(args: argparse.Namespace, conn: MongoDBConnection):
    document = args.data
    if args.dry_run:
        logger.info(
            "DRY RUN: Would insert document %s into collection '%s'.",
            document,
            conn.collection_name,
        )
        return
    result = conn.insert_one(document)
    logger.info(
        "Inserted document with ID: %s into collection '%s'.",
        result.inserted_id,
        conn.collection_name,
    )


def cmd_update_documents(args: argparse.Namespace, conn: MongoDBConnection):
    query = args.query
    update = args.update
    if args.dry_run:
        logger.info(
            "DRY RUN: Would update documents in collection '%s' with query %s, "
            "update %s, upsert=%s",
            conn.collection_name,
            query,
            update,
            args.upsert,
        )
        return
    result = conn.update_many(query, update, upsert=args.upsert)
    logger.info(
        "Matched %d documents, modified %d, upserted ID: %s in collection '%s'.",
        result.matched_count,
        result.modified_count,
        result.upserted_id,
        conn.collection_name,
    )


def cmd_delete_documents(args: argparse.Namespace, conn: MongoDBConnection):
    query = args.query
    if args.dry_run:
        logger.info(
            "DRY RUN: Would delete documents from collection '%s' with query %s",
            conn.collection_name,
            query,
        )
        return
    result = conn.delete_many(query)
    logger.info(
        "Deleted %d documents from collection '%s'.",
        result.deleted_count,
        conn.collection_name,
    )


def cmd_import_json(args: argparse.Namespace, settings: MongoSettings):
    importer = MongoImporter(
        settings, executable=args.executable, timeout=args.timeout
    )
    moved = importer.import_directory(
        args.input_dir,
        extension_name=args.extension,
        completed_dir=args.completed_dir,
        overwrite=args.overwrite,
    )
    for path in moved:
        print(path)


COLLECTION_COMMANDS: Dict[str, Callable[[argparse.Namespace, MongoDBConnection], None]] = {
    "find-documents": cmd_find_documents,
    "find-key-exists": cmd_find_key_exists,
    "insert-document": cmd_insert_document,
    "update-documents": cmd_update_documents,
    "delete-documents": cmd_delete_documents,
}


def execute_command(args: argparse.Namespace, settings: MongoSettings):
    """Runs the selected command against the configured collection."""
    logger.debug("Command '%s' selected.", args.command)
    if args.command == "import-json":
        cmd_import_json(args, settings)
        return

    handler = COLLECTION_COMMANDS[args.command]
    with MongoDBConnection.from_settings(settings) as conn:
        handler(args, conn)


def main(argv: Optional[List[str]]=None) -> int:
    """
    Parses arguments, runs one command and returns the process exit code.
    Setup and driver failures are logged and reported as exit status 1.
    """
    args = build_parser().parse_args(argv)
    setup_logging(debug_mode=args.debug, log_file=args.log_file)

    try:
        settings = settings_from_args(args)
        execute_command(args, settings)
    except MongoToolkitError as e:
        logger.critical("%s", e.message)
        return 1
    except PyMongoError:
        logger.critical("MongoDB operation failed.", exc_info=True)
        return 1
    except OSError:
        logger.critical("File operation failed.", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

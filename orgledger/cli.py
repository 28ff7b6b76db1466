import argparse
import logging
import os
import sys
from collections import OrderedDict

from dotenv import dotenv_values

from orgledger.app import Application
from orgledger.config.config import DEFAULT_TOKEN_EXPIRATION
from orgledger.data.mongodb import MongoDBAdapter
from orgledger.errors import NotFound, OrgLedgerError


class AdminCli:
    REQUIRED_ENV_VARS = ['MONGO_URI', 'MONGO_DATABASE', 'TOKEN_SECRET']

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        parser = argparse.ArgumentParser(
            description="Administrative commands for the orgledger database."
        )
        parser.add_argument(
            '--env-files',
            type=str,
            nargs='+',
            help="Path to environment files.",
            default=[]
        )
        subparsers = parser.add_subparsers(dest="command", help="Subcommand to run")
        subparsers.add_parser('init-indexes', help="Create collection indexes.")
        root_parser = subparsers.add_parser('create-root', help="Create the top-level node.")
        root_parser.add_argument('name', type=str, help="Name of the root node.")
        reset_parser = subparsers.add_parser('reset-password', help="Issue a new password for a node.")
        reset_parser.add_argument('code', type=str, help="Node code.")
        return parser

    def load_env(self, args):
        """
        Merge the given env files in order. Without any, use the process environment.
        """
        if not args.env_files:
            return OrderedDict((var, os.getenv(var)) for var in os.environ)

        merged_env = []
        for env_file in args.env_files:
            if os.path.exists(env_file) and os.path.isfile(env_file):
                merged_env += list(dotenv_values(env_file).items())
            else:
                self.parser.error(f"{env_file} file not found.")
        return OrderedDict(merged_env)

    def get_application(self, merged_env) -> Application:
        missing_vars = [var for var in self.REQUIRED_ENV_VARS if not merged_env.get(var)]
        if missing_vars:
            self.parser.error(f"Missing environment variables: {', '.join(missing_vars)}")

        adapter = MongoDBAdapter(merged_env['MONGO_URI'], merged_env['MONGO_DATABASE'])
        return Application(
            adapter,
            token_secret=merged_env['TOKEN_SECRET'],
            token_expiration=int(merged_env.get('TOKEN_EXPIRATION') or DEFAULT_TOKEN_EXPIRATION),
            report_timezone=merged_env.get('REPORT_TIMEZONE') or 'UTC',
        )

    def run(self, argv=None):
        args = self.parser.parse_args(argv)
        if not args.command:
            self.parser.print_help()
            return 1

        app = self.get_application(self.load_env(args))
        try:
            if args.command == 'init-indexes':
                created = app.ensure_indexes()
                print(f"Ensured {len(created)} indexes.")
            elif args.command == 'create-root':
                node, raw_password = app.node_service.create_root(args.name)
                print(f"Created {node.type.value} node '{node.name}'")
                print(f"Node code: {node.node_code}")
                print(f"Password: {raw_password}")
            elif args.command == 'reset-password':
                node = app.nodes.get_by_code(args.code)
                if node is None:
                    raise NotFound(f"No node with code {args.code}")
                _, raw_password = app.node_service.reset_password(node.entity_id)
                print(f"New password for {node.node_code}: {raw_password}")
        except OrgLedgerError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        finally:
            app.adapter.close()
        return 0


def main():
    logging.basicConfig(level=logging.INFO)
    sys.exit(AdminCli().run())


if __name__ == "__main__":
    main()

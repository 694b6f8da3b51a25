"""
Command line entry point.

Runs the deploy stages in a fixed order: connect, upload files, run a single
command, run a batch of commands. Each stage failure is a DeployError whose
exit code becomes the process exit status.
"""

import argparse
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from .batch import CommandResult, execute_batch, run_command
from .config import HOST_KEY_POLICIES, DeployConfig, load_env_file, log
from .connection import connect
from .credentials import Target, resolve_credentials
from .errors import (
    EXIT_INTERRUPTED,
    EXIT_OK,
    EXIT_USAGE,
    CommandError,
    DeployError,
    SessionError,
    TransferError,
)
from .upload import TransferResult, upload_files

EXIT_CODES_HELP = """\
exit codes:
  0    success
  1    usage error
  2    credential error (bad certificate, no password)
  3    connection error (dial, host key, authentication)
  4    session error (command channel could not be opened)
  5    manifest could not be read
  6    one or more uploads failed
  7    a remote command failed
  130  interrupted
"""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog='sshdeploy',
        description='Upload files and run commands on a remote host over SSH.',
        epilog=EXIT_CODES_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('-ip', '--host', dest='host', help='ip address or host name of the server')
    parser.add_argument('-c', '--command', dest='command',
                        help='command to execute in the server (no batch)')
    parser.add_argument('-b', '--batch', dest='batch',
                        help='path to a file with commands to execute in the server')
    parser.add_argument('-f', '--files', dest='files',
                        help='path to a file with files to transfer to the server')
    parser.add_argument('-cert', '--cert', dest='cert', help='path to a private key')
    parser.add_argument('-u', '--user', dest='user', help='user for connecting')
    parser.add_argument('-p', '--port', dest='port', type=int, help='ssh port (default: 22)')
    parser.add_argument('--remote-dir', dest='remote_dir',
                        help='remote directory uploads are written to (default: login directory)')
    parser.add_argument('--host-key-policy', dest='known_hosts_policy', choices=HOST_KEY_POLICIES,
                        help='how unknown host keys are handled (default: strict)')
    parser.add_argument('--known-hosts', dest='known_hosts_file',
                        help='extra known_hosts file checked by the strict policy')
    parser.add_argument('--max-workers', dest='max_workers', type=int,
                        help='maximum concurrent uploads (default: 8)')
    parser.add_argument('--timeout', dest='connection_timeout', type=int,
                        help='connection timeout in seconds (default: 10)')
    parser.add_argument('--command-timeout', dest='command_timeout', type=int,
                        help='per-command timeout in seconds (default: none)')
    parser.add_argument('--keep-going', dest='keep_going', action='store_true', default=None,
                        help='continue after failed uploads or commands')
    parser.add_argument('--debug', dest='debug', action='store_true', default=None,
                        help='print debug log lines')
    return parser


@dataclass
class RunReport:
    """What was attempted during a run, for the closing summary"""

    uploads: List[TransferResult] = field(default_factory=list)
    commands: List[CommandResult] = field(default_factory=list)
    commands_skipped: int = 0

    def is_empty(self) -> bool:
        return not (self.uploads or self.commands or self.commands_skipped)


def format_report(report: RunReport) -> List[str]:
    lines = []
    for r in report.uploads:
        status = 'ok' if r.success else f'FAILED ({r.error})'
        lines.append(f"upload {r.path} -> {r.remote_path}: {status}")
    for r in report.commands:
        if r.success:
            status = 'ok'
        elif r.error:
            status = f'FAILED ({r.error})'
        else:
            status = f'FAILED (exit code {r.exit_code})'
        lines.append(f"command {r.command!r}: {status}")

    uploads_ok = sum(1 for r in report.uploads if r.success)
    commands_ok = sum(1 for r in report.commands if r.success)
    summary = (
        f"uploads: {uploads_ok} ok, {len(report.uploads) - uploads_ok} failed; "
        f"commands: {commands_ok} ok, {len(report.commands) - commands_ok} failed"
    )
    if report.commands_skipped:
        summary += f", {report.commands_skipped} not run"
    lines.append(summary)
    return lines


def _write_output(text: str) -> None:
    if not text:
        return
    sys.stdout.write(text if text.endswith('\n') else text + '\n')
    sys.stdout.flush()


class _Run:
    """One deploy run; collects the first deferred failure under keep_going"""

    def __init__(self, target: Target, args: argparse.Namespace, config: DeployConfig, report: RunReport):
        self.target = target
        self.args = args
        self.config = config
        self.report = report
        self.deferred: Optional[DeployError] = None

    def fail(self, error: DeployError) -> None:
        if not self.config.keep_going:
            raise error
        log(f"warning: {error}")
        if self.deferred is None:
            self.deferred = error

    def _run_single(self, session) -> None:
        result = run_command(session, self.args.command, self.config.command_timeout)
        self.report.commands.append(result)
        _write_output(result.output)
        if not result.success:
            self.fail(CommandError(
                result.error or f"Command exited with status {result.exit_code}",
                command=result.command, exit_code=result.exit_code,
            ))

    def execute(self) -> int:
        credentials = resolve_credentials(self.target.username, self.target.certificate)

        with connect(self.target, credentials, self.config) as connection:
            log(f"Connected to {self.target.host}:{self.target.port}")

            if self.args.files:
                try:
                    uploads = upload_files(connection, self.args.files, self.config)
                except DeployError as e:
                    log("Uploading files: nok")
                    self.fail(e)
                else:
                    self.report.uploads.extend(uploads.results)
                    log(f"Uploading files: {uploads.status}")
                    if not uploads.ok:
                        self.fail(TransferError(
                            f"{len(uploads.failed)} of {len(uploads.results)} upload(s) failed"
                        ))

            if self.args.command:
                try:
                    session = connection.take_session()
                except SessionError as e:
                    self.report.commands.append(
                        CommandResult(command=self.args.command, exit_code=-1, error=str(e))
                    )
                    self.fail(e)
                else:
                    self._run_single(session)

            if self.args.batch:
                try:
                    batch = execute_batch(connection, self.args.batch, self.config)
                except DeployError as e:
                    log("Batch: nok")
                    self.fail(e)
                else:
                    self.report.commands.extend(batch.results)
                    self.report.commands_skipped += batch.skipped
                    _write_output(batch.output)
                    if batch.ok:
                        log("Deploy Done!!!")
                    else:
                        first = batch.failed[0]
                        self.fail(CommandError(
                            f"Batch command failed: {first.command}",
                            command=first.command, exit_code=first.exit_code,
                        ))

        if self.deferred is not None:
            raise self.deferred
        return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.host:
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    load_env_file()
    try:
        config = DeployConfig.from_env().merge({
            'port': args.port,
            'connection_timeout': args.connection_timeout,
            'command_timeout': args.command_timeout,
            'known_hosts_policy': args.known_hosts_policy,
            'known_hosts_file': args.known_hosts_file,
            'max_workers': args.max_workers,
            'remote_dir': args.remote_dir,
            'keep_going': args.keep_going,
            'debug': args.debug,
        })
    except ValueError as e:
        log(f"error: {e}")
        return EXIT_USAGE

    target = Target(host=args.host, port=config.port, username=args.user, certificate=args.cert)
    report = RunReport()
    try:
        return _Run(target, args, config, report).execute()
    except DeployError as e:
        log(f"error: {e}")
        return e.exit_code
    except KeyboardInterrupt:
        log("interrupted")
        return EXIT_INTERRUPTED
    finally:
        if not report.is_empty():
            for line in format_report(report):
                log(line)

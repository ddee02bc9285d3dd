from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .config import get_log_level, get_server_config, load_config
from .engine.service import GanttService
from .errors import GanttError, InvalidInputError, TaskNotFoundError
from .project import open_project


def _configure_logging(level: str = "INFO") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _service(args: argparse.Namespace) -> GanttService:
    return open_project(_resolve_project_dir(args.project_dir), backend='file')


def _emit(payload: Any) -> int:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')
    return 0


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'gantt-tree[server]'\n")
        return 1

    from .server import create_app

    project_dir = _resolve_project_dir(args.project_dir)
    config, err = load_config(project_dir)
    if err:
        sys.stderr.write(f"Invalid config: {err}\n")
        return 1
    _configure_logging(get_log_level(config))
    server_cfg = get_server_config(config)
    host = args.host or server_cfg['host']
    port = args.port or server_cfg['port']
    app = create_app(project_dir=project_dir, enable_cors=server_cfg['cors'])
    logger.info("Serving {} on http://{}:{}", project_dir, host, port)
    uvicorn.run(app, host=host, port=port)
    return 0


def _task_list(args: argparse.Namespace) -> int:
    return _emit({'tasks': _service(args).list_tasks()})


def _task_create(args: argparse.Namespace) -> int:
    body: dict[str, Any] = {'text': args.text, 'mode': args.mode}
    if args.parent is not None:
        body['parent'] = args.parent
    return _emit({'id': _service(args).create_task(body)})


def _task_move(args: argparse.Namespace) -> int:
    parent = args.parent if args.parent is not None else -1
    return _emit({'id': _service(args).move_task(args.task_id, args.mode, target=args.target, parent=parent)})


def _task_split(args: argparse.Namespace) -> int:
    body = {'text': args.text} if args.text else {}
    return _emit(_service(args).split_task(args.task_id, body))


def _task_delete(args: argparse.Namespace) -> int:
    _service(args).delete_task(args.task_id)
    return _emit({})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Gantt task tree server and maintenance commands')
    parser.add_argument('--project-dir', default=None, help='Target project directory (default: current working directory)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the web server')
    server.add_argument('--host', default=None)
    server.add_argument('--port', default=None, type=int)
    server.set_defaults(func=_server)

    task = subparsers.add_parser('task', help='Manage tasks in the project state directory')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tlist = task_sub.add_parser('list', help='List tasks by position')
    tlist.set_defaults(func=_task_list)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('text')
    tcreate.add_argument('--parent', default=None)
    tcreate.add_argument('--mode', default='last', choices=['first', 'last'])
    tcreate.set_defaults(func=_task_create)
    tmove = task_sub.add_parser('move', help='Move a task')
    tmove.add_argument('task_id')
    tmove.add_argument('mode', choices=['before', 'after', 'first', 'last'])
    tmove.add_argument('--target', default=None)
    tmove.add_argument('--parent', default=None)
    tmove.set_defaults(func=_task_move)
    tsplit = task_sub.add_parser('split', help='Split a task into a parent with children')
    tsplit.add_argument('task_id')
    tsplit.add_argument('--text', default=None)
    tsplit.set_defaults(func=_task_split)
    tdelete = task_sub.add_parser('delete', help='Delete a task with its subtree')
    tdelete.add_argument('task_id')
    tdelete.set_defaults(func=_task_delete)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return int(handler(args) or 0)
    except (InvalidInputError, TaskNotFoundError) as exc:
        sys.stderr.write(str(exc) + '\n')
        return 1
    except GanttError as exc:
        logger.error("{}", exc)
        return 1


if __name__ == '__main__':
    raise SystemExit(main())

import argparse
import asyncio
import getpass

import uvicorn

from timer_guard.config.settings import load_local_env
from timer_guard.core.guard_controller import GuardController
from timer_guard.core.token_store import SecureTokenStore
from timer_guard.errors import TokenStoreError
from timer_guard.logger import logger

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5578


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timer-guard",
        description="Remind yourself to start a ClickUp timer while working",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="スケジューラとコントロールAPIを起動")
    serve.add_argument("--host", default=DEFAULT_HOST, help="待ち受けホスト")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help="待ち受けポート")

    sub.add_parser("check-once", help="1回だけチェックを実行")

    token = sub.add_parser("token", help="ClickUp APIトークンの管理")
    token_sub = token.add_subparsers(dest="token_command", required=True)
    token_set = token_sub.add_parser("set", help="トークンを保存")
    token_set.add_argument("value", nargs="?", help="省略時はプロンプトで入力")
    token_sub.add_parser("delete", help="トークンを削除")

    return parser


def serve(host: str, port: int) -> None:
    uvicorn.run("timer_guard.api.main:app", host=host, port=port)


def check_once() -> int:
    controller = GuardController()
    status = asyncio.run(controller.check_now())
    print(status.last_check_description)
    print(f"Active App: {status.current_frontmost_app_id}")
    print(f"Working: {'Active' if status.is_active_work_context else 'Inactive'}")
    print(f"Timer: {'Running' if status.is_timer_running else 'Not Running'}")
    if status.last_error_message:
        print(f"Error: {status.last_error_message}")
        return 1
    return 0


def manage_token(command: str, value: str | None) -> int:
    store = SecureTokenStore()
    try:
        if command == "set":
            token = (value or getpass.getpass("ClickUp API token: ")).strip()
            if not token:
                print("Token must not be empty")
                return 1
            store.save_token(token)
            print("Token saved")
        else:
            store.delete_token()
            print("Token deleted")
    except TokenStoreError as e:
        logger.error(f"トークン操作エラー: {e}")
        print(f"Error: {e}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """メイン関数."""
    args = build_parser().parse_args(argv)
    load_local_env()

    if args.command == "check-once":
        return check_once()
    if args.command == "token":
        return manage_token(args.token_command, args.value if args.token_command == "set" else None)

    serve(getattr(args, "host", DEFAULT_HOST), getattr(args, "port", DEFAULT_PORT))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

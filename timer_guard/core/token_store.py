import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from timer_guard.errors import TokenStoreError

SERVICE_NAME = "ClickUpTimerGuard"
ACCOUNT_NAME = "clickupAPIToken"


class SecureTokenStore:
    """ClickUp APIトークンをOSのキーチェーン（keyring）に保存する."""

    def __init__(self, service: str = SERVICE_NAME, account: str = ACCOUNT_NAME) -> None:
        self.service = service
        self.account = account

    def load_token(self) -> str | None:
        try:
            return keyring.get_password(self.service, self.account)
        except KeyringError as e:
            msg = f"Keychain read failed: {e}"
            raise TokenStoreError(msg) from e

    def save_token(self, token: str) -> None:
        try:
            keyring.set_password(self.service, self.account, token)
        except KeyringError as e:
            msg = f"Keychain write failed: {e}"
            raise TokenStoreError(msg) from e

    def delete_token(self) -> None:
        try:
            keyring.delete_password(self.service, self.account)
        except PasswordDeleteError:
            # 未保存なら何もしない
            return
        except KeyringError as e:
            msg = f"Keychain delete failed: {e}"
            raise TokenStoreError(msg) from e

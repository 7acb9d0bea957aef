import os
import yaml
import keyring
import keyring.errors

from settings_schema import AppSettingsSchema, validate_settings

APP_VERSION = "1.0.0"

ENV_OVERRIDES = {
    "db_path": "PT_DB_PATH",
    "resend_api_key": "RESEND_API_KEY",
    "email_from": "EMAIL_FROM",
    "youtube_api_key": "YOUTUBE_API_KEY",
    "unsplash_access_key": "UNSPLASH_ACCESS_KEY",
    "cron_secret": "CRON_SECRET",
    "app_password": "APP_PASSWORD",
}


class YamlConfig:
    """Settings file for the tracker; secrets can live in the OS keyring.

    With ``ENCRYPT_SETTINGS=1`` the API keys, cron secret and app password are
    written to the keyring and the YAML file only records that they are set.
    """

    SENSITIVE_KEYS = (
        "resend_api_key",
        "youtube_api_key",
        "unsplash_access_key",
        "cron_secret",
        "app_password",
    )
    KEYRING_SERVICE = "pt_tracker"

    def __init__(self, path: str = "settings.yaml", encrypt: bool | None = None) -> None:
        self.path = path
        if encrypt is None:
            encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.encrypt = encrypt

    def _read_file(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def load(self) -> dict:
        data = self._read_file()
        if not self.encrypt:
            return data
        for key in self.SENSITIVE_KEYS:
            if key not in data:
                continue
            secret = keyring.get_password(self.KEYRING_SERVICE, key)
            if secret is None:
                del data[key]
            else:
                data[key] = secret
        return data

    def save(self, data: dict) -> None:
        out = {k: v for k, v in data.items() if v is not None}
        if self.encrypt:
            for key in self.SENSITIVE_KEYS:
                if key in out:
                    keyring.set_password(self.KEYRING_SERVICE, key, str(out[key]))
                    out[key] = True
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f, sort_keys=True)
        os.replace(tmp_path, self.path)

    def forget(self, key: str) -> None:
        """Remove ``key`` from the file and, for secrets, from the keyring."""
        data = self._read_file()
        data.pop(key, None)
        if self.encrypt and key in self.SENSITIVE_KEYS:
            try:
                keyring.delete_password(self.KEYRING_SERVICE, key)
            except keyring.errors.PasswordDeleteError:
                # nothing stored for this key
                pass
        self.save(data)


def load_app_settings(
    yaml_path: str = "settings.yaml", environ: dict | None = None
) -> AppSettingsSchema:
    """Return application settings from YAML with environment overrides."""
    env = os.environ if environ is None else environ
    data = YamlConfig(yaml_path).load()
    for key, var in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[key] = value
    validate_settings(data)
    return AppSettingsSchema(**data)

from sqlalchemy.orm import Session

from backoffice.models.system_settings_model import SystemSetting

DEFAULT_SETTINGS = {
    "REQUIRE_EMAIL_CONFIRMATION": ("true", "Refuse sign-in until the email address is confirmed"),
    "AUTO_PROVISION_PROFILES": ("true", "Create the staff profile as soon as the identity signs up"),
    "WEEKLY_COLLECTION_TARGET": ("50000", "Weekly collection target shown on the agent dashboard"),
}


def get_setting(db: Session, key: str, default: str) -> str:
    row = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    return row.value if row else default


def get_flag(db: Session, key: str) -> bool:
    default = DEFAULT_SETTINGS.get(key, ("false", ""))[0]
    return get_setting(db, key, default).strip().lower() in ("1", "true", "yes", "on")

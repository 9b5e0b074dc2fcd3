from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backoffice.core.guards import Roles, require_roles
from backoffice.models.system_settings_model import SystemSetting
from backoffice.models.user_model import User
from backoffice.schemas.settings_schema import SettingCreate, SettingOut, SettingPatch
from backoffice.utils.database import get_db

router = APIRouter(prefix="/settings", tags=["Settings"])

admin_only = require_roles(Roles.ADMIN)


@router.get("", response_model=list[SettingOut])
def list_settings(db: Session = Depends(get_db), _admin: User = Depends(admin_only)):
    return db.query(SystemSetting).order_by(SystemSetting.key.asc()).all()


@router.post("", response_model=SettingOut, status_code=status.HTTP_201_CREATED)
def create_setting(
        payload: SettingCreate,
        db: Session = Depends(get_db),
        admin: User = Depends(admin_only),
):
    key = payload.key.strip().upper()
    if db.query(SystemSetting).filter(SystemSetting.key == key).first():
        raise HTTPException(status_code=409, detail="Setting key already exists")

    obj = SystemSetting(
        key=key,
        value=str(payload.value).strip(),
        description=(payload.description or "").strip(),
        updated_by=admin.user_id,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@router.patch("", response_model=SettingOut)
def update_setting(
        payload: SettingPatch,
        db: Session = Depends(get_db),
        admin: User = Depends(admin_only),
):
    obj = db.query(SystemSetting).filter(SystemSetting.key == payload.key.strip().upper()).first()
    if not obj:
        raise HTTPException(404, "Setting not found")

    obj.value = payload.value.strip()
    obj.updated_by = admin.user_id
    db.commit()
    db.refresh(obj)
    return obj

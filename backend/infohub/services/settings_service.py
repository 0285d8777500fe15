"""
Site settings editable from the admin panel.

Settings live in the system_settings table as JSON values keyed by
"<category>.<name>". Defaults are created on startup.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.exceptions import ResourceNotFoundError, ValidationError
from infohub.core.logging_config import logger
from infohub.models import SystemSetting, User
from infohub.services.audit_service import log_admin_action

# Default settings that should exist
DEFAULT_SETTINGS = {
    "site.name": {
        "value": "School Info Hub",
        "description": "Name shown in the site header and emails",
        "category": "site",
        "public": True,
    },
    "site.description": {
        "value": "News, events and resources for our school community",
        "description": "Short description used on the homepage and in link previews",
        "category": "site",
        "public": True,
    },
    "homepage.hero_image_url": {
        "value": "",
        "description": "Background image for the homepage hero section",
        "category": "homepage",
        "public": True,
    },
    "homepage.welcome_title": {
        "value": "Welcome to our school",
        "description": "Headline of the homepage hero section",
        "category": "homepage",
        "public": True,
    },
    "contact.email": {
        "value": "office@school.example",
        "description": "Public contact email for the school office",
        "category": "contact",
        "public": True,
    },
    "contact.phone": {
        "value": "",
        "description": "Public contact phone number",
        "category": "contact",
        "public": True,
    },
    "features.event_registration": {
        "value": True,
        "description": "Allow online registration for events",
        "category": "features",
        "public": True,
    },
    "features.parent_feedback": {
        "value": True,
        "description": "Show the feedback form to parents",
        "category": "features",
        "public": True,
    },
    "notifications.email_enabled": {
        "value": False,
        "description": "Mirror in-app notifications by email",
        "category": "notifications",
        "public": False,
    },
    "general.maintenance_mode": {
        "value": False,
        "description": "Show a maintenance banner and pause public content updates",
        "category": "general",
        "public": True,
    },
}

PUBLIC_SETTING_KEYS = [key for key, config in DEFAULT_SETTINGS.items() if config["public"]]


def serialize_setting(setting: SystemSetting) -> Dict[str, Any]:
    return {
        "id": str(setting.id),
        "key": setting.key,
        "value": setting.value,
        "description": setting.description,
        "category": setting.category,
        "updatedAt": setting.updated_at.isoformat() if setting.updated_at else None,
    }


async def ensure_default_settings(db: AsyncSession) -> int:
    """Ensure default settings exist in database; returns how many were created"""
    created = 0
    for key, config in DEFAULT_SETTINGS.items():
        existing = await db.scalar(select(SystemSetting).where(SystemSetting.key == key))
        if not existing:
            db.add(SystemSetting(
                key=key,
                value=config["value"],
                description=config["description"],
                category=config["category"]
            ))
            created += 1
    if created:
        await db.commit()
        logger.info(f"[Settings] Created {created} default settings")
    return created


async def list_settings(db: AsyncSession, category: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
    """All settings grouped by category"""
    query = select(SystemSetting)
    if category:
        query = query.where(SystemSetting.category == category)
    query = query.order_by(SystemSetting.category, SystemSetting.key)

    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for setting in (await db.execute(query)).scalars().all():
        grouped.setdefault(setting.category or "general", []).append(serialize_setting(setting))
    return grouped


async def get_public_settings(db: AsyncSession) -> Dict[str, Any]:
    """Flat key -> value map of settings safe to show anonymous visitors"""
    rows = await db.execute(select(SystemSetting).where(SystemSetting.key.in_(PUBLIC_SETTING_KEYS)))
    values = {key: DEFAULT_SETTINGS[key]["value"] for key in PUBLIC_SETTING_KEYS}
    for setting in rows.scalars().all():
        values[setting.key] = setting.value
    return values


async def _apply_update(db: AsyncSession, key: str, value: Any, admin: User,
                        description: Optional[str] = None) -> Dict[str, Any]:
    default = DEFAULT_SETTINGS.get(key)
    if default is not None and isinstance(default["value"], bool) and not isinstance(value, bool):
        raise ValidationError(f"Setting '{key}' must be true or false", field=key)

    setting = await db.scalar(select(SystemSetting).where(SystemSetting.key == key))
    if setting is None:
        if key not in DEFAULT_SETTINGS:
            raise ResourceNotFoundError("Setting", key)
        config = DEFAULT_SETTINGS[key]
        setting = SystemSetting(key=key, value=config["value"],
                                description=config["description"], category=config["category"])
        db.add(setting)

    old_value = setting.value
    setting.value = value
    if description is not None:
        setting.description = description
    setting.updated_by = admin.id
    setting.updated_at = datetime.utcnow()
    return {"key": key, "old_value": old_value, "new_value": value}


async def update_setting(db: AsyncSession, key: str, value: Any, admin: User,
                         description: Optional[str] = None, request: Request = None) -> Dict[str, Any]:
    change = await _apply_update(db, key, value, admin, description)
    await db.commit()
    await log_admin_action(db, admin.id, "setting_updated", "setting", key, change, request)
    return change


async def batch_update(db: AsyncSession, values: Dict[str, Any], admin: User,
                       request: Request = None) -> List[Dict[str, Any]]:
    """Update several settings in one transaction"""
    if not values:
        raise ValidationError("No settings given")

    changes = [await _apply_update(db, key, value, admin) for key, value in values.items()]
    await db.commit()
    await log_admin_action(db, admin.id, "settings_batch_updated", "settings", None,
                           {"changes": changes}, request)
    return changes

"""Masked contact details shown to deal parties before they talk directly"""

from typing import Optional


def mask_email(email: Optional[str]) -> str:
    """john@acme.com -> j***@acme.com"""
    if not email:
        return ""
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def mask_phone(phone: Optional[str]) -> Optional[str]:
    """9876543210 -> 98****10; short numbers are returned unchanged"""
    if not phone or len(phone) < 4:
        return phone
    return f"{phone[:2]}****{phone[-2:]}"


def temp_contact_id(user_id, post_id) -> str:
    return f"temp_{str(user_id)[:8]}_{str(post_id)[:8]}"


def build_masked_contacts(unlocker, author, post_id) -> dict:
    """Snapshot of both parties' masked contacts, stored once on the deal"""
    return {
        "unlocker": {
            "email": mask_email(unlocker.email),
            "phone": mask_phone(unlocker.phone),
            "tempId": temp_contact_id(unlocker.id, post_id),
        },
        "author": {
            "email": mask_email(author.email),
            "phone": mask_phone(author.phone),
            "tempId": temp_contact_id(author.id, post_id),
        },
    }

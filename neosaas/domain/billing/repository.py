"""Billing repository - Database operations for billing"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Company, PlatformConfig


class BillingRepository:
    """Repository for billing database operations"""

    @staticmethod
    def get_platform_config(db: Session, key: str) -> Optional[str]:
        """Get one platform_config value"""
        row = db.query(PlatformConfig).filter(PlatformConfig.key == key).first()
        return row.value if row else None

    @staticmethod
    def get_platform_configs(db: Session, keys: list[str]) -> dict[str, Optional[str]]:
        """Get several platform_config values as a dict (missing keys omitted)"""
        rows = db.query(PlatformConfig).filter(PlatformConfig.key.in_(keys)).all()
        return {row.key: row.value for row in rows}

    @staticmethod
    def set_platform_config(db: Session, key: str, value: Optional[str]) -> PlatformConfig:
        row = db.query(PlatformConfig).filter(PlatformConfig.key == key).first()
        if row:
            row.value = value
            row.updated_at = datetime.utcnow()
        else:
            row = PlatformConfig(key=key, value=value)
            db.add(row)
        db.commit()
        return row

    @staticmethod
    def get_company(db: Session, company_id: str) -> Optional[Company]:
        return db.query(Company).filter(Company.id == company_id).first()

    @staticmethod
    def cache_company_lago_id(db: Session, company_id: str, lago_id: str) -> None:
        """Remember the Lago customer of a company so later checkouts reuse it"""
        company = BillingRepository.get_company(db, company_id)
        if not company:
            return
        company.lago_id = lago_id
        company.updated_at = datetime.utcnow()
        db.commit()

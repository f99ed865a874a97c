from sqlalchemy import JSON, Column, Index, String, Text

from perfwatch.platform.db.base import BaseModel


class Scan(BaseModel):
    """
    One stored audit of one URL on one device.

    The mobile and desktop scans of a single submission share run_id.
    """
    __tablename__ = "scans"

    # Supplied by the upstream auth layer; there is no users table here
    user_id = Column(String, nullable=False, index=True)

    url = Column(String(2048), nullable=False)

    # {"form_factor": "mobile"|"desktop", "categories": [...] | null}
    options = Column(JSON, nullable=True)

    # Raw Lighthouse result without filmstrip frames; NULL when over MAX_REPORT_JSON_BYTES
    report_json = Column(Text, nullable=True)

    # Median SummaryView
    summary = Column(JSON, nullable=False)

    # Filename inside DATA_DIR/screenshots, e.g. "<id>.webp"
    screenshot_path = Column(String(255), nullable=True)

    share_token = Column(String(64), nullable=True, unique=True)

    run_id = Column(String(64), nullable=True, index=True)

    __table_args__ = (
        Index('idx_scans_user_created', 'user_id', 'created_at'),
        Index('idx_scans_user_url', 'user_id', 'url'),
    )

import databases
import sqlalchemy

from formapi.config import config

metadata = sqlalchemy.MetaData()


form_table = sqlalchemy.Table(
    "form",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(24), primary_key=True),
    # stored HTML-escaped; one character can grow to six
    sqlalchemy.Column("title", sqlalchemy.Text, nullable=False),
    sqlalchemy.Column("description", sqlalchemy.Text, default=""),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default="draft"),
    sqlalchemy.Column("fields", sqlalchemy.JSON, nullable=False, default=[]),
    sqlalchemy.Column("pages", sqlalchemy.JSON, nullable=False, default=[]),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, nullable=False),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime, nullable=False),
)

response_table = sqlalchemy.Table(
    "response",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(24), primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("form.id"), nullable=False),
    sqlalchemy.Column("submitted_at", sqlalchemy.DateTime, nullable=False),
    sqlalchemy.Column("data", sqlalchemy.JSON, nullable=False),  # {field_id: value, ...}
    sqlalchemy.Column("submitter_ip", sqlalchemy.String(64), nullable=False, default=""),
    sqlalchemy.Column("respondent_email", sqlalchemy.String(320), nullable=False, default=""),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, nullable=False),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime, nullable=False),
)

# newest responses of a form first
sqlalchemy.Index(
    "ix_response_form_id_submitted_at",
    response_table.c.form_id,
    response_table.c.submitted_at.desc(),
)
# per-respondent lookups within a form
sqlalchemy.Index(
    "ix_response_form_id_respondent_email",
    response_table.c.form_id,
    response_table.c.respondent_email,
)

qr_link_table = sqlalchemy.Table(
    "qr_link",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(24), primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("form.id"), nullable=False, unique=True),
    sqlalchemy.Column("token", sqlalchemy.String(16), nullable=False, unique=True),
    sqlalchemy.Column("scan_count", sqlalchemy.Integer, nullable=False, default=0),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, nullable=False),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime, nullable=False),
)


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = sqlalchemy.create_engine(config.DATABASE_URL, connect_args=connect_args)

metadata.create_all(engine)
database = databases.Database(
    config.DATABASE_URL, force_rollback=config.DB_FORCE_ROLL_BACK
)

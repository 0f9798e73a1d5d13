import databases
import sqlalchemy
from formsapi.config import config

metadata = sqlalchemy.MetaData()


form_table = sqlalchemy.Table(
    "form",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(50), primary_key=True),
    sqlalchemy.Column("name", sqlalchemy.String(100), nullable=False),
    sqlalchemy.Column("description", sqlalchemy.Text),
    sqlalchemy.Column("schema_version", sqlalchemy.Integer, nullable=False, default=1),
    sqlalchemy.Column("active", sqlalchemy.Boolean, nullable=False, default=True),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime(timezone=True), nullable=False),
    sqlalchemy.Column("removed_at", sqlalchemy.DateTime(timezone=True)),
    sqlalchemy.Column("removed_by", sqlalchemy.String(256)),
    sqlalchemy.Column("protected", sqlalchemy.Boolean, nullable=False, default=False),
    sqlalchemy.Column("fields", sqlalchemy.JSON, nullable=False),  # list of field definitions
)

response_table = sqlalchemy.Table(
    "form_response",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(64), primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("form.id"), nullable=False),
    sqlalchemy.Column("schema_version", sqlalchemy.Integer, nullable=False),
    sqlalchemy.Column("values", sqlalchemy.JSON, nullable=False),
    sqlalchemy.Column("computed", sqlalchemy.JSON, nullable=False),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime(timezone=True), nullable=False),
    sqlalchemy.Column("active", sqlalchemy.Boolean, nullable=False, default=True),
    sqlalchemy.Column("removed_at", sqlalchemy.DateTime(timezone=True)),
    sqlalchemy.Column("removed_by", sqlalchemy.String(256)),
)


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = sqlalchemy.create_engine(config.DATABASE_URL, connect_args=connect_args)

metadata.create_all(engine)
database = databases.Database(
    config.DATABASE_URL, force_rollback=config.DB_FORCE_ROLL_BACK
)

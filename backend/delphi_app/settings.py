from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Database (the survey store; this backend only reads survey data)
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# Store reads are paged so the server-side row cap can never truncate a round
	store_page_size: int = Field(default=1000, gt=0, validation_alias="STORE_PAGE_SIZE")
	# Max ids per IN (...) lookup against profiles / responses
	store_in_chunk_size: int = Field(default=500, gt=0, validation_alias="STORE_IN_CHUNK_SIZE")

	# Result table
	table_page_size: int = Field(default=25, gt=0, validation_alias="TABLE_PAGE_SIZE")
	default_cut_off_consensus: float = Field(default=70, ge=0, le=100, validation_alias="CUT_OFF_CONSENSUS")
	default_cut_off_nonessential: float = Field(default=30, ge=0, le=100, validation_alias="CUT_OFF_NONESSENTIAL")
	# Option label marker for "not essential" answers (legacy content convention, matched case-insensitively)
	non_essential_marker: str = Field(default="không thiết yếu", validation_alias="NON_ESSENTIAL_MARKER")
	round_label_template: str = Field(default="Vòng {number}", validation_alias="ROUND_LABEL_TEMPLATE")

	# Tokens are issued by the external identity provider; we only verify them
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	jwt_audience: str | None = Field(default="authenticated", validation_alias="JWT_AUDIENCE")
	admin_roles: List[str] = Field(default_factory=lambda: ["admin"], validation_alias="ADMIN_ROLES")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()

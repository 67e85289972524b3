"""Core data models for accounts, sessions, complaints, moderation and audit trails."""
import enum
from datetime import datetime, timedelta

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


class UserRole(str, enum.Enum):
	USER = "user"
	ADMIN = "admin"
	CITY_HALL = "city_hall"


STAFF_ROLES: frozenset = frozenset({UserRole.ADMIN, UserRole.CITY_HALL})

STATUS_ANALYSIS = "Em Análise"
STATUS_IN_PROGRESS = "Em Andamento"
STATUS_VERIFICATION = "Em Verificação"
STATUS_RESOLVED = "Resolvido"
STATUS_REOPENED = "Reaberto"
STATUS_CANCELLED = "Cancelado"

COMPLAINT_STATUSES: tuple[str, ...] = (
	STATUS_ANALYSIS,
	STATUS_IN_PROGRESS,
	STATUS_VERIFICATION,
	STATUS_RESOLVED,
	STATUS_REOPENED,
	STATUS_CANCELLED,
)

REPORT_TYPES: tuple[str, ...] = (
	"complaint",
	"comment",
)

REPORT_PENDING = "Pendente"
REPORT_RESOLVED = "resolved"
REPORT_DISMISSED = "dismissed"

REPORT_STATUSES: tuple[str, ...] = (
	REPORT_PENDING,
	REPORT_RESOLVED,
	REPORT_DISMISSED,
)


def _iso(value: datetime | None) -> str | None:
	return value.isoformat() if value else None


def _in_clause(column: str, values) -> str:
	quoted = ",".join(f"'{v}'" for v in values)
	return f"{column} IN ({quoted})"


complaint_tags = db.Table(
	"complaint_tags",
	db.Column("complaint_id", db.Integer, db.ForeignKey("complaints.id", ondelete="CASCADE"), primary_key=True),
	db.Column("tag_id", db.Integer, db.ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
	db.Column("created_at", db.DateTime, default=datetime.utcnow, nullable=False),
)


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.Integer, primary_key=True)
	nickname = db.Column(db.String(30), unique=True, nullable=False, index=True)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	password_hash = db.Column(db.String(255), nullable=False)
	role = db.Column(
		db.Enum(UserRole, name="user_role", values_callable=lambda roles: [r.value for r in roles]),
		nullable=False,
		default=UserRole.USER,
	)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
	last_login_at = db.Column(db.DateTime, nullable=True)

	complaints = db.relationship("Complaint", back_populates="author", cascade="all, delete-orphan")
	comments = db.relationship("Comment", back_populates="author", cascade="all, delete-orphan")
	reports = db.relationship(
		"Report",
		back_populates="reporter",
		foreign_keys="Report.user_id",
		cascade="all, delete-orphan",
	)
	sessions = db.relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
	activity_logs = db.relationship("ActivityLog", back_populates="user", cascade="all, delete-orphan")
	# Audit rows and resolved reports outlive the acting user; their reference is nulled.
	status_changes = db.relationship("ComplaintLog", back_populates="changed_by", foreign_keys="ComplaintLog.changed_by_id")
	resolved_reports = db.relationship("Report", back_populates="resolver", foreign_keys="Report.resolved_by_id")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		if not self.password_hash:
			return False
		return check_password_hash(self.password_hash, password)

	@property
	def is_admin(self) -> bool:
		return self.role == UserRole.ADMIN

	@property
	def is_staff(self) -> bool:
		return self.role in STAFF_ROLES

	def public_payload(self) -> dict:
		return {
			"id": self.id,
			"nickname": self.nickname,
			"role": self.role.value if self.role else None,
			"createdAt": _iso(self.created_at),
		}

	def private_payload(self) -> dict:
		payload = self.public_payload()
		payload["email"] = self.email
		payload["lastLoginAt"] = _iso(self.last_login_at)
		return payload


class UserSession(db.Model):
	__tablename__ = "sessions"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	token_hash = db.Column(db.String(128), nullable=True, index=True)
	device_info = db.Column(db.JSON, nullable=True)
	ip_address = db.Column(db.String(64), nullable=True)
	last_activity = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
	revoked_at = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	user = db.relationship("User", back_populates="sessions")

	def public_payload(self, current_session_id: int | None = None) -> dict:
		return {
			"id": self.id,
			"deviceInfo": self.device_info or {},
			"ip": self.ip_address,
			"lastUsed": _iso(self.last_activity),
			"createdAt": _iso(self.created_at),
			"isCurrent": self.id == current_session_id,
		}


class VerificationCode(db.Model):
	__tablename__ = "verification_codes"

	id = db.Column(db.Integer, primary_key=True)
	email = db.Column(db.String(255), nullable=False, index=True)
	code_hash = db.Column(db.String(255), nullable=False)
	expires_at = db.Column(db.DateTime, nullable=False, index=True)
	consumed_at = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	@staticmethod
	def create_for(email: str, code: str, ttl_minutes: int = 10):
		record = VerificationCode(
			email=email,
			code_hash=generate_password_hash(code, method="pbkdf2:sha256", salt_length=12),
			expires_at=datetime.utcnow() + timedelta(minutes=ttl_minutes),
		)
		db.session.add(record)
		return record

	@property
	def is_expired(self) -> bool:
		return datetime.utcnow() > self.expires_at

	def verify(self, candidate: str) -> bool:
		if self.consumed_at or self.is_expired:
			return False
		return check_password_hash(self.code_hash, candidate)


class ActivityLog(db.Model):
	__tablename__ = "activity_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
	action = db.Column(db.String(80), nullable=False, index=True)
	details = db.Column(db.JSON, nullable=True)
	ip_address = db.Column(db.String(64), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="activity_logs")

	def public_payload(self) -> dict:
		return {
			"id": self.id,
			"action": self.action,
			"details": self.details,
			"ip": self.ip_address,
			"user": {"id": self.user.id, "nickname": self.user.nickname} if self.user else None,
			"createdAt": _iso(self.created_at),
		}


class Tag(db.Model):
	__tablename__ = "tags"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(50), unique=True, nullable=False, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	complaints = db.relationship("Complaint", secondary=complaint_tags, back_populates="tags")

	def public_payload(self) -> dict:
		return {"id": self.id, "name": self.name}


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	title = db.Column(db.String(200), nullable=False)
	description = db.Column(db.Text, nullable=False)
	location = db.Column(db.String(255), nullable=False)
	polygon_coordinates = db.Column(db.JSON, nullable=True)
	images = db.Column(db.JSON, nullable=False, default=list)
	status = db.Column(db.String(20), nullable=False, default=STATUS_ANALYSIS, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(
		db.DateTime,
		default=datetime.utcnow,
		onupdate=datetime.utcnow,
		nullable=False,
	)

	__table_args__ = (
		db.CheckConstraint(_in_clause("status", COMPLAINT_STATUSES), name="ck_complaint_status_valid"),
	)

	author = db.relationship("User", back_populates="complaints")
	logs = db.relationship(
		"ComplaintLog",
		back_populates="complaint",
		order_by="[ComplaintLog.created_at, ComplaintLog.id]",
		cascade="all, delete-orphan",
	)
	comments = db.relationship(
		"Comment",
		back_populates="complaint",
		order_by="Comment.created_at.desc()",
		cascade="all, delete-orphan",
	)
	tags = db.relationship("Tag", secondary=complaint_tags, back_populates="complaints", order_by="Tag.name")

	def public_payload(self, include_history: bool = False) -> dict:
		payload = {
			"id": self.id,
			"title": self.title,
			"description": self.description,
			"location": self.location,
			"polygonCoordinates": self.polygon_coordinates,
			"images": list(self.images or []),
			"status": self.status,
			"userId": self.user_id,
			"author": {"nickname": self.author.nickname} if self.author else None,
			"tags": [tag.public_payload() for tag in self.tags],
			"createdAt": _iso(self.created_at),
			"updatedAt": _iso(self.updated_at),
		}
		if include_history:
			payload["logs"] = [log.public_payload() for log in self.logs]
		return payload


class ComplaintLog(db.Model):
	__tablename__ = "complaint_logs"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True)
	old_status = db.Column(db.String(20), nullable=True)
	new_status = db.Column(db.String(20), nullable=False, index=True)
	changed_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("new_status", COMPLAINT_STATUSES), name="ck_complaint_log_status_valid"),
	)

	complaint = db.relationship("Complaint", back_populates="logs")
	changed_by = db.relationship("User", back_populates="status_changes", foreign_keys=[changed_by_id])

	def public_payload(self) -> dict:
		return {
			"id": self.id,
			"oldStatus": self.old_status,
			"newStatus": self.new_status,
			"changedBy": {"id": self.changed_by.id, "nickname": self.changed_by.nickname} if self.changed_by else None,
			"createdAt": _iso(self.created_at),
		}


class Comment(db.Model):
	__tablename__ = "comments"

	id = db.Column(db.Integer, primary_key=True)
	content = db.Column(db.Text, nullable=False)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	author = db.relationship("User", back_populates="comments")
	complaint = db.relationship("Complaint", back_populates="comments")

	def public_payload(self) -> dict:
		return {
			"id": self.id,
			"content": self.content,
			"complaintId": self.complaint_id,
			"userId": self.user_id,
			"author": {"nickname": self.author.nickname} if self.author else None,
			"createdAt": _iso(self.created_at),
			"updatedAt": _iso(self.updated_at),
		}


class Report(db.Model):
	__tablename__ = "reports"

	id = db.Column(db.Integer, primary_key=True)
	target_type = db.Column("type", db.String(20), nullable=False, index=True)
	# Weak reference: points at complaints.id or comments.id depending on target_type.
	target_id = db.Column(db.Integer, nullable=False, index=True)
	reason = db.Column(db.Text, nullable=False)
	status = db.Column(db.String(20), nullable=False, default=REPORT_PENDING, index=True)
	admin_note = db.Column(db.Text, nullable=True)
	resolved_at = db.Column(db.DateTime, nullable=True)
	resolved_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.UniqueConstraint("type", "target_id", "user_id", name="uq_report_target_reporter"),
		db.CheckConstraint(_in_clause("type", REPORT_TYPES), name="ck_report_type_valid"),
		db.CheckConstraint(_in_clause("status", REPORT_STATUSES), name="ck_report_status_valid"),
		db.Index("ix_report_target", "type", "target_id"),
	)

	reporter = db.relationship("User", back_populates="reports", foreign_keys=[user_id])
	resolver = db.relationship("User", back_populates="resolved_reports", foreign_keys=[resolved_by_id])

	@property
	def is_open(self) -> bool:
		return self.status == REPORT_PENDING

	def public_payload(self) -> dict:
		return {
			"id": self.id,
			"type": self.target_type,
			"targetId": self.target_id,
			"reason": self.reason,
			"status": self.status,
			"adminNote": self.admin_note,
			"resolvedAt": _iso(self.resolved_at),
			"resolvedBy": {"id": self.resolver.id, "nickname": self.resolver.nickname} if self.resolver else None,
			"reporter": {"id": self.reporter.id, "nickname": self.reporter.nickname} if self.reporter else None,
			"createdAt": _iso(self.created_at),
		}

# memberhub/database/models.py

import enum
import uuid
from datetime import datetime, timezone

from memberhub import db


def utcnow():
    """Naive UTC timestamp, the representation stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid.uuid4())


class ElectionScope(str, enum.Enum):
    ASSOCIATION = 'ASSOCIATION'
    BRANCH = 'BRANCH'
    CHAPTER = 'CHAPTER'


class ElectionStatus(str, enum.Enum):
    DRAFT = 'DRAFT'
    OPEN = 'OPEN'
    CLOSED = 'CLOSED'
    COMPLETED = 'COMPLETED'


class PartyScope(str, enum.Enum):
    NATIONAL = 'NATIONAL'
    ASSOCIATION = 'ASSOCIATION'
    BRANCH = 'BRANCH'
    CHAPTER = 'CHAPTER'


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SoftDeleteMixin:
    deleted_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_deleted(self):
        return self.deleted_at is not None


# Organizational hierarchy

class Association(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'associations'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), unique=True, nullable=False)

    branches = db.relationship('Branch', back_populates='association', lazy=True)


class Branch(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'branches'
    __table_args__ = (db.UniqueConstraint('association_id', 'name', name='uq_branch_association_name'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    association_id = db.Column(db.String(36), db.ForeignKey('associations.id'), nullable=False)

    association = db.relationship('Association', back_populates='branches')
    chapters = db.relationship('Chapter', back_populates='branch', lazy=True)


class Chapter(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'chapters'
    __table_args__ = (db.UniqueConstraint('branch_id', 'name', name='uq_chapter_branch_name'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    branch_id = db.Column(db.String(36), db.ForeignKey('branches.id'), nullable=False)

    branch = db.relationship('Branch', back_populates='chapters')
    specialties = db.relationship('ChapterSpecialty', back_populates='chapter', lazy=True,
                                  cascade='all, delete-orphan')


class Specialty(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'specialties'
    __table_args__ = (db.UniqueConstraint('association_id', 'name', name='uq_specialty_association_name'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    association_id = db.Column(db.String(36), db.ForeignKey('associations.id'), nullable=False)

    association = db.relationship('Association')


class ChapterSpecialty(db.Model):
    __tablename__ = 'chapter_specialties'
    __table_args__ = (
        db.UniqueConstraint('chapter_id', 'specialty_id', name='uq_chapter_specialty'),
        db.UniqueConstraint('branch_id', 'specialty_id', name='uq_branch_specialty'),
    )
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    chapter_id = db.Column(db.String(36), db.ForeignKey('chapters.id'), nullable=False)
    specialty_id = db.Column(db.String(36), db.ForeignKey('specialties.id'), nullable=False)
    # Redundant with chapter.branch_id, kept for per-branch uniqueness
    branch_id = db.Column(db.String(36), db.ForeignKey('branches.id'), nullable=False)

    chapter = db.relationship('Chapter', back_populates='specialties')
    specialty = db.relationship('Specialty')


# Identity

class User(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    dni = db.Column(db.String(8), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(200), nullable=False)  # Argon2id
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(254), unique=True, nullable=True)
    phone = db.Column(db.String(20), unique=True, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    status_reason = db.Column(db.String(255), nullable=True)
    chapter_id = db.Column(db.String(36), db.ForeignKey('chapters.id'), nullable=False)

    chapter = db.relationship('Chapter')
    roles = db.relationship('UserRole', back_populates='user', lazy=True, cascade='all, delete-orphan')
    votes = db.relationship('Vote', backref='voter', lazy=True)

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'.strip()

    @property
    def can_sign_in(self):
        return self.is_active and self.deleted_at is None

    def role_names(self):
        return [link.role.name for link in self.roles if link.role.deleted_at is None]

    def permission_keys(self):
        keys = []
        for link in self.roles:
            if link.role.deleted_at is not None:
                continue
            for grant in link.role.permissions:
                key = grant.permission.key
                if grant.permission.deleted_at is None and key not in keys:
                    keys.append(key)
        return keys


class Role(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'roles'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    permissions = db.relationship('RolePermission', back_populates='role', lazy=True,
                                  cascade='all, delete-orphan')


class Permission(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'permissions'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    key = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(255), nullable=True)


class UserRole(db.Model):
    __tablename__ = 'user_roles'
    __table_args__ = (db.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    role_id = db.Column(db.String(36), db.ForeignKey('roles.id'), nullable=False)

    user = db.relationship('User', back_populates='roles')
    role = db.relationship('Role')


class RolePermission(db.Model):
    __tablename__ = 'role_permissions'
    __table_args__ = (db.UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    role_id = db.Column(db.String(36), db.ForeignKey('roles.id'), nullable=False)
    permission_id = db.Column(db.String(36), db.ForeignKey('permissions.id'), nullable=False)

    role = db.relationship('Role', back_populates='permissions')
    permission = db.relationship('Permission')


class Session(db.Model):
    __tablename__ = 'sessions'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    token_hash = db.Column(db.String(64), unique=True, nullable=False)  # SHA-256, never the raw token
    expires_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime, nullable=True)
    ip_hash = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)


class PasswordResetToken(db.Model):
    __tablename__ = 'password_reset_tokens'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)


# Elections

class PoliticalParty(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'political_parties'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), unique=True, nullable=False)
    acronym = db.Column(db.String(50), nullable=True)
    scope = db.Column(db.Enum(PartyScope), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    association_id = db.Column(db.String(36), db.ForeignKey('associations.id'), nullable=True)
    branch_id = db.Column(db.String(36), db.ForeignKey('branches.id'), nullable=True)
    chapter_id = db.Column(db.String(36), db.ForeignKey('chapters.id'), nullable=True)


class Election(TimestampMixin, db.Model):
    __tablename__ = 'elections'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.Enum(ElectionStatus), default=ElectionStatus.DRAFT, nullable=False, index=True)
    scope = db.Column(db.Enum(ElectionScope), nullable=False)
    association_id = db.Column(db.String(36), db.ForeignKey('associations.id'), nullable=False)
    branch_id = db.Column(db.String(36), db.ForeignKey('branches.id'), nullable=True)
    chapter_id = db.Column(db.String(36), db.ForeignKey('chapters.id'), nullable=True)

    association = db.relationship('Association')
    branch = db.relationship('Branch')
    chapter = db.relationship('Chapter')
    positions = db.relationship('ElectionPosition', back_populates='election', lazy=True,
                                order_by='ElectionPosition.order', cascade='all, delete-orphan')
    candidate_lists = db.relationship('CandidateList', back_populates='election', lazy=True)

    def is_open_at(self, moment):
        return self.status == ElectionStatus.OPEN and self.start_date <= moment <= self.end_date


class ElectionPosition(db.Model):
    __tablename__ = 'election_positions'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0)

    election = db.relationship('Election', back_populates='positions')


class CandidateList(TimestampMixin, db.Model):
    __tablename__ = 'candidate_lists'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    number = db.Column(db.Integer, nullable=True)
    political_party_id = db.Column(db.String(36), db.ForeignKey('political_parties.id'), nullable=True)

    election = db.relationship('Election', back_populates='candidate_lists')
    political_party = db.relationship('PoliticalParty')
    candidates = db.relationship('Candidate', back_populates='candidate_list', lazy=True)


class Candidate(TimestampMixin, db.Model):
    __tablename__ = 'candidates'
    __table_args__ = (db.UniqueConstraint('candidate_list_id', 'position_id', name='uq_candidate_list_position'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    candidate_list_id = db.Column(db.String(36), db.ForeignKey('candidate_lists.id'), nullable=False)
    position_id = db.Column(db.String(36), db.ForeignKey('election_positions.id'), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    dni = db.Column(db.String(8), nullable=True)
    photo_url = db.Column(db.String(500), nullable=True)
    vote_count = db.Column(db.Integer, default=0, nullable=False)  # denormalized tally

    candidate_list = db.relationship('CandidateList', back_populates='candidates')
    position = db.relationship('ElectionPosition')

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'


class Vote(db.Model):
    __tablename__ = 'votes'
    __table_args__ = (db.UniqueConstraint('user_id', 'election_position_id', name='uq_vote_user_position'),)
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    candidate_id = db.Column(db.String(36), db.ForeignKey('candidates.id'), nullable=False)
    election_position_id = db.Column(db.String(36), db.ForeignKey('election_positions.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f'<Vote {self.id} by User {self.user_id}>'

# memberhub/organizations/service.py

# Organizational hierarchy and political parties: create (restoring a
# soft-deleted row with the same name), list, update, soft-delete.

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import selectinload
from werkzeug.exceptions import BadRequest, Conflict, NotFound

from memberhub import db
from memberhub.database.models import (
    Association, Branch, Chapter, ChapterSpecialty, PartyScope, PoliticalParty, Specialty, utcnow,
)
from memberhub.database.transactions import atomic
from memberhub.errors import conflict_on_integrity_error


class OrganizationService:
    def __init__(self, audit_logger):
        self.audit = audit_logger

    def _active(self, model, entity_id, label):
        row = db.session.execute(
            select(model).where(model.id == entity_id, model.deleted_at.is_(None))
        ).scalar_one_or_none()
        if row is None:
            raise NotFound(f'{label} not found')
        return row

    def _create_or_restore(self, model, lookup, values, label, actor_id):
        existing = db.session.execute(select(model).filter_by(**lookup)).scalar_one_or_none()
        if existing is not None and existing.deleted_at is None:
            raise Conflict(f'{label} already exists')

        with conflict_on_integrity_error(f'{label} already exists'), atomic() as session:
            if existing is not None:
                row = existing
                row.deleted_at = None
            else:
                row = model()
                session.add(row)
            for name, value in values.items():
                setattr(row, name, value)

        action = 'RESTORE' if existing is not None else 'CREATED'
        self.audit.log(f'{label.upper()}_{action}', model.__name__, row.id, user_id=actor_id)
        return row

    def _update(self, row, values, label, actor_id):
        with conflict_on_integrity_error(f'{label} already exists'), atomic():
            for name, value in values.items():
                if value is not None:
                    setattr(row, name, value)
        self.audit.log(f'{label.upper()}_UPDATED', type(row).__name__, row.id, user_id=actor_id)
        return row

    def _soft_delete(self, row, label, actor_id):
        with atomic():
            row.deleted_at = utcnow()
            if isinstance(row, PoliticalParty):
                row.is_active = False
        self.audit.log(f'{label.upper()}_DELETED', type(row).__name__, row.id, user_id=actor_id)
        return {'success': True}

    # Associations

    def list_associations(self):
        return db.session.execute(
            select(Association).where(Association.deleted_at.is_(None)).order_by(Association.name)
        ).scalars().all()

    def create_association(self, name, actor_id=None):
        return self._create_or_restore(Association, {'name': name}, {'name': name}, 'Association', actor_id)

    def update_association(self, association_id, name=None, actor_id=None):
        row = self._active(Association, association_id, 'Association')
        return self._update(row, {'name': name}, 'Association', actor_id)

    def delete_association(self, association_id, actor_id=None):
        row = self._active(Association, association_id, 'Association')
        return self._soft_delete(row, 'Association', actor_id)

    # Branches

    def list_branches(self, association_id=None):
        query = (
            select(Branch)
            .join(Association)
            .where(Branch.deleted_at.is_(None), Association.deleted_at.is_(None))
            .order_by(Branch.name)
        )
        if association_id:
            query = query.where(Branch.association_id == association_id)
        return db.session.execute(query).scalars().all()

    def create_branch(self, name, association_id, actor_id=None):
        self._active(Association, association_id, 'Association')
        return self._create_or_restore(
            Branch, {'association_id': association_id, 'name': name},
            {'name': name, 'association_id': association_id}, 'Branch', actor_id,
        )

    def update_branch(self, branch_id, name=None, actor_id=None):
        row = self._active(Branch, branch_id, 'Branch')
        return self._update(row, {'name': name}, 'Branch', actor_id)

    def delete_branch(self, branch_id, actor_id=None):
        row = self._active(Branch, branch_id, 'Branch')
        return self._soft_delete(row, 'Branch', actor_id)

    # Specialties

    def list_specialties(self, association_id=None):
        query = select(Specialty).where(Specialty.deleted_at.is_(None)).order_by(Specialty.name)
        if association_id:
            query = query.where(Specialty.association_id == association_id)
        return db.session.execute(query).scalars().all()

    def create_specialty(self, name, association_id, actor_id=None):
        self._active(Association, association_id, 'Association')
        return self._create_or_restore(
            Specialty, {'association_id': association_id, 'name': name},
            {'name': name, 'association_id': association_id}, 'Specialty', actor_id,
        )

    def update_specialty(self, specialty_id, name=None, actor_id=None):
        row = self._active(Specialty, specialty_id, 'Specialty')
        return self._update(row, {'name': name}, 'Specialty', actor_id)

    def delete_specialty(self, specialty_id, actor_id=None):
        row = self._active(Specialty, specialty_id, 'Specialty')
        return self._soft_delete(row, 'Specialty', actor_id)

    # Chapters

    def list_chapters(self, branch_id=None):
        query = (
            select(Chapter)
            .join(Branch)
            .join(Association)
            .options(selectinload(Chapter.specialties).selectinload(ChapterSpecialty.specialty))
            .where(Chapter.deleted_at.is_(None), Branch.deleted_at.is_(None), Association.deleted_at.is_(None))
            .order_by(Chapter.name)
        )
        if branch_id:
            query = query.where(Chapter.branch_id == branch_id)
        return db.session.execute(query).scalars().all()

    def _check_specialties(self, branch, specialty_ids, chapter_id=None):
        specialty_ids = list(dict.fromkeys(specialty_ids))
        specialties = db.session.execute(
            select(Specialty).where(Specialty.id.in_(specialty_ids), Specialty.deleted_at.is_(None))
        ).scalars().all()
        if len(specialties) != len(specialty_ids):
            raise NotFound('Specialty not found')
        if any(s.association_id != branch.association_id for s in specialties):
            raise Conflict('Specialty does not belong to branch association')
        taken = select(ChapterSpecialty.id).where(
            ChapterSpecialty.branch_id == branch.id, ChapterSpecialty.specialty_id.in_(specialty_ids)
        )
        if chapter_id:
            taken = taken.where(ChapterSpecialty.chapter_id != chapter_id)
        if db.session.execute(taken).first():
            raise Conflict('Some specialties already belong to a chapter in this branch')
        return specialty_ids

    def _assign_specialties(self, session, chapter, branch, specialty_ids):
        session.execute(delete(ChapterSpecialty).where(ChapterSpecialty.chapter_id == chapter.id))
        session.expire(chapter, ['specialties'])
        for specialty_id in specialty_ids:
            session.add(ChapterSpecialty(chapter_id=chapter.id, specialty_id=specialty_id, branch_id=branch.id))

    def create_chapter(self, name, branch_id, specialty_ids=None, actor_id=None):
        branch = self._active(Branch, branch_id, 'Branch')
        existing = db.session.execute(
            select(Chapter).filter_by(branch_id=branch_id, name=name)
        ).scalar_one_or_none()
        if existing is not None and existing.deleted_at is None:
            raise Conflict('Chapter already exists')
        if specialty_ids is not None:
            specialty_ids = self._check_specialties(branch, specialty_ids,
                                                    existing.id if existing is not None else None)

        with conflict_on_integrity_error('Chapter already exists'), atomic() as session:
            if existing is not None:
                chapter = existing
                chapter.deleted_at = None
            else:
                chapter = Chapter(name=name, branch_id=branch.id)
                session.add(chapter)
                session.flush()
            if specialty_ids is not None:
                self._assign_specialties(session, chapter, branch, specialty_ids)

        action = 'CHAPTER_RESTORE' if existing is not None else 'CHAPTER_CREATED'
        self.audit.log(action, 'Chapter', chapter.id, user_id=actor_id,
                       metadata={'specialtyIds': specialty_ids or []})
        return chapter

    def update_chapter(self, chapter_id, name=None, specialty_ids=None, actor_id=None):
        chapter = self._active(Chapter, chapter_id, 'Chapter')
        branch = chapter.branch
        if specialty_ids is not None:
            specialty_ids = self._check_specialties(branch, specialty_ids, chapter.id)

        with conflict_on_integrity_error('Chapter already exists'), atomic() as session:
            if name is not None:
                chapter.name = name
            if specialty_ids is not None:
                self._assign_specialties(session, chapter, branch, specialty_ids)

        self.audit.log('CHAPTER_UPDATED', 'Chapter', chapter.id, user_id=actor_id)
        return chapter

    def delete_chapter(self, chapter_id, actor_id=None):
        chapter = self._active(Chapter, chapter_id, 'Chapter')
        with atomic() as session:
            chapter.deleted_at = utcnow()
            session.execute(delete(ChapterSpecialty).where(ChapterSpecialty.chapter_id == chapter.id))
        session.expire(chapter, ['specialties'])
        self.audit.log('CHAPTER_DELETED', 'Chapter', chapter.id, user_id=actor_id)
        return {'success': True}

    # Political parties

    def list_parties(self, scope=None, association_id=None, branch_id=None, chapter_id=None):
        """Parties usable in an election of ``scope``.

        NATIONAL parties always apply; parties of a higher level in the same
        hierarchy apply to lower-scope elections.
        """
        query = select(PoliticalParty).where(PoliticalParty.deleted_at.is_(None)).order_by(PoliticalParty.name)
        if scope is None:
            return db.session.execute(query).scalars().all()

        conditions = [PoliticalParty.scope == PartyScope.NATIONAL]
        if scope == PartyScope.ASSOCIATION and association_id:
            conditions.append(and_(PoliticalParty.scope == PartyScope.ASSOCIATION,
                                   PoliticalParty.association_id == association_id))
        elif scope == PartyScope.BRANCH and branch_id:
            if association_id:
                conditions.append(and_(PoliticalParty.scope == PartyScope.ASSOCIATION,
                                       PoliticalParty.association_id == association_id))
            conditions.append(and_(PoliticalParty.scope == PartyScope.BRANCH,
                                   PoliticalParty.branch_id == branch_id))
        elif scope == PartyScope.CHAPTER and chapter_id:
            if association_id:
                conditions.append(and_(PoliticalParty.scope == PartyScope.ASSOCIATION,
                                       PoliticalParty.association_id == association_id))
            if branch_id:
                conditions.append(and_(PoliticalParty.scope == PartyScope.BRANCH,
                                       PoliticalParty.branch_id == branch_id))
            conditions.append(and_(PoliticalParty.scope == PartyScope.CHAPTER,
                                   PoliticalParty.chapter_id == chapter_id))
        return db.session.execute(query.where(or_(*conditions))).scalars().all()

    def _party_scope(self, scope, association_id=None, branch_id=None, chapter_id=None):
        if scope is None:
            raise BadRequest('Scope is required')
        values = {'scope': scope, 'association_id': None, 'branch_id': None, 'chapter_id': None}
        if scope == PartyScope.ASSOCIATION:
            if not association_id:
                raise BadRequest('associationId is required for ASSOCIATION scope')
            self._scope_owner(Association, association_id, 'Association')
            values['association_id'] = association_id
        elif scope == PartyScope.BRANCH:
            if not branch_id:
                raise BadRequest('branchId is required for BRANCH scope')
            self._scope_owner(Branch, branch_id, 'Branch')
            values['branch_id'] = branch_id
        elif scope == PartyScope.CHAPTER:
            if not chapter_id:
                raise BadRequest('chapterId is required for CHAPTER scope')
            self._scope_owner(Chapter, chapter_id, 'Chapter')
            values['chapter_id'] = chapter_id
        return values

    def _scope_owner(self, model, entity_id, label):
        row = db.session.get(model, entity_id)
        if row is None or row.deleted_at is not None:
            raise BadRequest(f'{label} not found')

    def create_party(self, name, scope, acronym=None, is_active=True,
                     association_id=None, branch_id=None, chapter_id=None, actor_id=None):
        values = self._party_scope(scope, association_id, branch_id, chapter_id)
        values.update(name=name, acronym=acronym, is_active=True if is_active is None else is_active)
        return self._create_or_restore(PoliticalParty, {'name': name}, values, 'Party', actor_id)

    def update_party(self, party_id, name=None, acronym=None, scope=None, is_active=None,
                     association_id=None, branch_id=None, chapter_id=None, actor_id=None):
        party = self._active(PoliticalParty, party_id, 'Party')
        values = {k: v for k, v in (('name', name), ('acronym', acronym), ('is_active', is_active))
                  if v is not None}
        if any(v is not None for v in (scope, association_id, branch_id, chapter_id)):
            # Owners outside the new scope are cleared
            values.update(self._party_scope(
                scope or party.scope,
                association_id or party.association_id,
                branch_id or party.branch_id,
                chapter_id or party.chapter_id,
            ))

        with conflict_on_integrity_error('Party already exists'), atomic():
            for key, value in values.items():
                setattr(party, key, value)
        self.audit.log('PARTY_UPDATED', 'PoliticalParty', party.id, user_id=actor_id)
        return party

    def delete_party(self, party_id, actor_id=None):
        party = self._active(PoliticalParty, party_id, 'Party')
        return self._soft_delete(party, 'Party', actor_id)

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin

db = SQLAlchemy()

COMPETITION_STATUSES = ("draft", "active", "completed")
ROUND_STATUSES = ("pending", "active", "completed")


def utcnow():
    """Naive UTC timestamp; SQLite drops tzinfo so every stored time is naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(UserMixin, db.Model):
    """Sign-in account of the admin identity provider.

    Being signed in only proves identity. Admin rights come from a matching
    AdminUser row whose external_user_id equals get_id().
    """
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)


class AdminUser(db.Model):
    __tablename__ = "admin_users"

    id = db.Column(db.Integer, primary_key=True)
    external_user_id = db.Column(db.String(100), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(200))
    is_super_admin = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "external_user_id": self.external_user_id,
            "name": self.name,
            "email": self.email,
            "is_super_admin": self.is_super_admin,
        }


class Competition(db.Model):
    __tablename__ = "competitions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    name_en = db.Column(db.String(200))
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="draft")
    current_round = db.Column(db.Integer, nullable=False, default=1)
    total_rounds = db.Column(db.Integer, nullable=False, default=2)
    voting_enabled = db.Column(db.Boolean, nullable=False, default=False)
    display_mode = db.Column(db.String(30), nullable=False, default="ranking")
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    rounds = db.relationship("Round", backref="competition", cascade="all, delete",
                             order_by="Round.round_number")
    groups = db.relationship("Group", backref="competition", cascade="all, delete",
                             order_by="Group.name")
    judges = db.relationship("Judge", backref="competition", cascade="all, delete")
    scoring_factors = db.relationship("ScoringFactor", backref="competition",
                                      cascade="all, delete",
                                      order_by="ScoringFactor.order_index")
    results = db.relationship("CompetitionResult", backref="competition",
                              cascade="all, delete")

    __table_args__ = (
        db.CheckConstraint("current_round <= total_rounds", name="ck_competition_current_round"),
        db.CheckConstraint("status IN ('draft', 'active', 'completed')", name="ck_competition_status"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "name_en": self.name_en,
            "description": self.description,
            "status": self.status,
            "current_round": self.current_round,
            "total_rounds": self.total_rounds,
            "voting_enabled": self.voting_enabled,
            "display_mode": self.display_mode,
        }


class Round(db.Model):
    __tablename__ = "rounds"

    id = db.Column(db.Integer, primary_key=True)
    competition_id = db.Column(db.Integer, db.ForeignKey("competitions.id", ondelete="CASCADE"),
                               nullable=False)
    round_number = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    name_en = db.Column(db.String(200))
    description = db.Column(db.Text)
    elimination_count = db.Column(db.Integer, nullable=False, default=0)
    is_public_voting = db.Column(db.Boolean, nullable=False, default=False)
    public_votes_per_user = db.Column(db.Integer, nullable=False, default=5)
    status = db.Column(db.String(20), nullable=False, default="pending")
    start_time = db.Column(db.DateTime)
    end_time = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    scores = db.relationship("JudgeScore", backref="round", cascade="all, delete")
    results = db.relationship("CompetitionResult", backref="round", cascade="all, delete")
    votes = db.relationship("PublicVote", backref="round", cascade="all, delete")

    __table_args__ = (
        db.UniqueConstraint("competition_id", "round_number", name="uq_competition_round_number"),
        # At most one active round per competition
        db.Index("uq_round_one_active", "competition_id", unique=True,
                 sqlite_where=db.text("status = 'active'"),
                 postgresql_where=db.text("status = 'active'")),
        db.CheckConstraint("round_number > 0", name="ck_round_number_positive"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "round_number": self.round_number,
            "name": self.name,
            "name_en": self.name_en,
            "description": self.description,
            "elimination_count": self.elimination_count,
            "is_public_voting": self.is_public_voting,
            "public_votes_per_user": self.public_votes_per_user,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    competition_id = db.Column(db.Integer, db.ForeignKey("competitions.id", ondelete="CASCADE"),
                               nullable=False)
    name = db.Column(db.String(120), nullable=False)
    photo_url = db.Column(db.String(500))
    leader_id = db.Column(db.Integer, db.ForeignKey("participants.id", use_alter=True,
                                                    name="fk_group_leader", ondelete="SET NULL"))
    is_eliminated = db.Column(db.Boolean, nullable=False, default=False)
    elimination_round = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    leader = db.relationship("Participant", foreign_keys=[leader_id], post_update=True)
    participants = db.relationship("Participant", backref="group",
                                   foreign_keys="Participant.group_id",
                                   order_by="Participant.name")
    scores = db.relationship("JudgeScore", backref="group", cascade="all, delete")
    results = db.relationship("CompetitionResult", backref="group", cascade="all, delete")
    votes = db.relationship("PublicVote", backref="group", cascade="all, delete")

    __table_args__ = (
        db.UniqueConstraint("competition_id", "name", name="uq_competition_group_name"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "name": self.name,
            "photo_url": self.photo_url,
            "leader_id": self.leader_id,
            "is_eliminated": self.is_eliminated,
            "elimination_round": self.elimination_round,
        }


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    photo_url = db.Column(db.String(500))
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "photo_url": self.photo_url,
            "group_id": self.group_id,
        }


class Judge(db.Model):
    __tablename__ = "judges"

    id = db.Column(db.Integer, primary_key=True)
    competition_id = db.Column(db.Integer, db.ForeignKey("competitions.id", ondelete="CASCADE"),
                               nullable=False)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200))
    phone = db.Column(db.String(50))
    photo_url = db.Column(db.String(500))
    specialization = db.Column(db.String(200))
    experience_years = db.Column(db.Integer)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    sessions = db.relationship("JudgeSession", backref="judge", cascade="all, delete")
    scores = db.relationship("JudgeScore", backref="judge", cascade="all, delete")

    __table_args__ = (
        db.UniqueConstraint("competition_id", "name", name="uq_competition_judge_name"),
        db.CheckConstraint("experience_years IS NULL OR experience_years >= 0",
                           name="ck_judge_experience_years"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "photo_url": self.photo_url,
            "specialization": self.specialization,
            "experience_years": self.experience_years,
            "is_active": self.is_active,
        }


class JudgeSession(db.Model):
    """Server-side record behind the judge_session cookie.

    Rows are never swept automatically; validation treats a row whose
    expires_at has passed as absent.
    """
    __tablename__ = "judge_sessions"

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    judge_id = db.Column(db.Integer, db.ForeignKey("judges.id", ondelete="CASCADE"), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)


class ScoringFactor(db.Model):
    __tablename__ = "scoring_factors"

    id = db.Column(db.Integer, primary_key=True)
    competition_id = db.Column(db.Integer, db.ForeignKey("competitions.id", ondelete="CASCADE"),
                               nullable=False)
    name = db.Column(db.String(100), nullable=False)
    name_en = db.Column(db.String(100))
    description = db.Column(db.Text)
    max_score = db.Column(db.Float, nullable=False, default=10)
    weight = db.Column(db.Float, nullable=False, default=1.0)
    order_index = db.Column(db.Integer)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    scores = db.relationship("JudgeScore", backref="factor", cascade="all, delete")

    def to_dict(self):
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "name": self.name,
            "name_en": self.name_en,
            "max_score": self.max_score,
            "weight": self.weight,
            "order_index": self.order_index,
            "is_active": self.is_active,
        }


class JudgeScore(db.Model):
    __tablename__ = "judge_scores"

    id = db.Column(db.Integer, primary_key=True)
    judge_id = db.Column(db.Integer, db.ForeignKey("judges.id", ondelete="CASCADE"), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    factor_id = db.Column(db.Integer, db.ForeignKey("scoring_factors.id", ondelete="CASCADE"),
                          nullable=False)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False)
    score = db.Column(db.Float, nullable=False)
    comments = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("judge_id", "group_id", "factor_id", "round_id", name="uq_judge_score_slot"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "judge_id": self.judge_id,
            "group_id": self.group_id,
            "factor_id": self.factor_id,
            "round_id": self.round_id,
            "score": self.score,
            "comments": self.comments,
        }


class CompetitionResult(db.Model):
    """Computed standing of one group in one round."""
    __tablename__ = "competition_results"

    id = db.Column(db.Integer, primary_key=True)
    competition_id = db.Column(db.Integer, db.ForeignKey("competitions.id", ondelete="CASCADE"),
                               nullable=False)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    judge_score = db.Column(db.Float, nullable=False, default=0)
    public_votes = db.Column(db.Integer, nullable=False, default=0)
    total_score = db.Column(db.Float, nullable=False, default=0)
    rank = db.Column(db.Integer, nullable=False)
    is_qualified = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "round_id": self.round_id,
            "group_id": self.group_id,
            "judge_score": self.judge_score,
            "public_votes": self.public_votes,
            "total_score": self.total_score,
            "rank": self.rank,
            "is_qualified": self.is_qualified,
        }


class PublicVote(db.Model):
    __tablename__ = "public_votes"

    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    voter_token = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

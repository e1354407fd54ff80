"""
SQLAlchemy ORM Models
Defines the raw fact tables of the metrics store and the names of the derived tables.
"""

from sqlalchemy import Column, DateTime, Float, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()

SUCCESS_STATUS = 'success'

# Materialized tables rebuilt by the aggregation engine
DAILY_TEAM_SUMMARY = 'daily_team_summary'
TEAM_RANKINGS = 'team_rankings'


# ============================================
# RAW FACT TABLES
# ============================================

class Deployment(Base):
    """One deployment of a service by a team."""
    __tablename__ = 'deployments'

    deployment_id = Column(String, primary_key=True)
    team = Column(String, nullable=False)
    service = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String, nullable=False)
    environment = Column(String, nullable=False)
    commit_hash = Column(String, nullable=False)


class Incident(Base):
    """Production incident; loaded but not aggregated yet."""
    __tablename__ = 'incidents'

    incident_id = Column(String, primary_key=True)
    team = Column(String, nullable=False)
    service = Column(String, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    severity = Column(String, nullable=False)
    resolved_by = Column(String)
    root_cause = Column(String)


class PullRequest(Base):
    """Pull request; loaded but not aggregated yet."""
    __tablename__ = 'pull_requests'

    pr_id = Column(String, primary_key=True)
    team = Column(String, nullable=False)
    author = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False)
    merged_at = Column(DateTime)
    lines_added = Column(Integer)
    lines_deleted = Column(Integer)
    review_time_hours = Column(Float)
    status = Column(String, nullable=False)


FACT_MODELS = (Deployment, Incident, PullRequest)

from sqlalchemy import Column, Integer, String, Float, Text, JSON, Boolean
from warwatch.db import Base


class EventModel(Base):
    __tablename__ = 'events'
    id = Column(String, primary_key=True)
    type = Column(String, nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    location = Column(String)
    country = Column(String, index=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    source = Column(String, index=True)
    timestamp = Column(String, nullable=False, index=True)  # UTC ISO-8601
    threat_level = Column(String, nullable=False)
    verified = Column(Boolean, default=False)


class NewsItemModel(Base):
    __tablename__ = 'news'
    id = Column(String, primary_key=True)  # derived from the dedup key
    title = Column(Text, nullable=False)
    source = Column(String, index=True)
    timestamp = Column(String, nullable=False, index=True)
    url = Column(String)
    category = Column(String)
    breaking = Column(Boolean, default=False)
    sentiment = Column(Float)


class AlertModel(Base):
    __tablename__ = 'alerts'
    id = Column(String, primary_key=True)
    area = Column(String, nullable=False)
    threat = Column(String)
    timestamp = Column(String, nullable=False, index=True)
    active = Column(Boolean, default=True, index=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)


class AISummaryModel(Base):
    __tablename__ = 'ai_summaries'
    id = Column(Integer, primary_key=True, autoincrement=True)
    summary = Column(Text, nullable=False)
    threat_assessment = Column(String, nullable=False)
    key_points = Column(JSON)
    recommendation = Column(Text)
    last_updated = Column(String, nullable=False, index=True)

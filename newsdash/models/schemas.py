from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from .articles import Article, Category, ParsedVia, Source


class ArticleResponse(BaseModel):
    title: str = Field(..., description="Headline text")
    link: str = Field(..., description="Article URL as extracted from the feed")
    source: str = Field(..., description="Display name of the source")
    category: Category = Field(..., description="Registry category of the source")
    published_at: datetime = Field(..., description="Publish time (UTC); fetch time when the feed date is unusable")
    parsed_via: ParsedVia = Field(..., description="Which parser produced the item")

    @classmethod
    def from_article(cls, article: Article) -> "ArticleResponse":
        return cls(
            title=article.title,
            link=article.link,
            source=article.source,
            category=article.category,
            published_at=article.published_at,
            parsed_via=article.parsed_via,
        )


class HeadlinesResponse(BaseModel):
    category: Category = Field(..., description="Requested category")
    articles: List[ArticleResponse] = Field(..., description="Fairly interleaved articles")
    total_count: int = Field(..., description="Number of articles returned")
    generated_at: datetime = Field(..., description="Completion time of the cycle that produced this set (UTC)")


class RefreshResponse(BaseModel):
    total_count: int = Field(..., description="Unique articles across all sources")
    source_counts: Dict[str, int] = Field(default_factory=dict, description="Articles contributed per source")
    generated_at: datetime = Field(..., description="Completion time of the cycle (UTC)")
    processing_time_ms: int = Field(..., description="Time taken by the cycle (in milliseconds)")


class SourceResponse(BaseModel):
    name: str = Field(..., description="Source display name")
    category: Category = Field(..., description="Registry category")
    candidates: List[str] = Field(..., description="Candidate endpoints in the order they are tried")

    @classmethod
    def from_source(cls, source: Source) -> "SourceResponse":
        return cls(name=source.name, category=source.category, candidates=list(source.candidates))


class SchedulerStateResponse(BaseModel):
    state: str = Field(..., description="'running', 'paused' or 'stopped'")
    refreshing: bool = Field(..., description="True while a cycle is in flight")
    interval_seconds: float = Field(..., description="Time between scheduled cycles")
    cycles_completed: int = Field(..., description="Cycles published since startup")
    last_duration_ms: Optional[int] = Field(None, description="Duration of the last cycle")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Overall API status ('ok' or 'unhealthy')")
    message: str = Field(..., description="Descriptive health message")
    timestamp: datetime = Field(..., description="Timestamp of health check (UTC)")
    article_count: int = Field(..., description="Articles in the current aggregate set")

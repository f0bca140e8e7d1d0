"""Domain models for blog posts."""
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

BLOG_CATEGORIES = (
    "investment-guide",
    "market-insights",
    "whisky-education",
    "company-news",
    "case-studies",
)

BlogCategory = Literal[
    "investment-guide", "market-insights", "whisky-education", "company-news", "case-studies"
]
BlogStatus = Literal["draft", "published", "archived"]

SLUG_PATTERN = r"^[a-z0-9-]+$"


class FeaturedImage(BaseModel):
    url: str
    alt: str = ""


class Author(BaseModel):
    name: str = Field(default="Viticult Whisky", max_length=100)
    bio: Optional[str] = None
    avatar: Optional[str] = None


class SeoFields(BaseModel):
    meta_title: Optional[str] = Field(default=None, alias="metaTitle", max_length=60)
    meta_description: Optional[str] = Field(default=None, alias="metaDescription", max_length=160)
    focus_keyword: Optional[str] = Field(default=None, alias="focusKeyword")

    class Config:
        populate_by_name = True


def _lowercase_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    return [tag.strip().lower() for tag in tags if tag and tag.strip()]


class BlogPostCreate(BaseModel):
    """Admin payload for a new post. ``slug`` is derived from the title when omitted."""
    title: str = Field(min_length=1, max_length=200)
    slug: Optional[str] = Field(default=None, pattern=SLUG_PATTERN)
    excerpt: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1)
    featured_image: FeaturedImage = Field(alias="featuredImage")
    category: BlogCategory
    tags: List[str] = Field(default_factory=list)
    author: Author = Field(default_factory=Author)
    status: BlogStatus = "draft"
    seo: SeoFields = Field(default_factory=SeoFields)
    featured: bool = False

    class Config:
        populate_by_name = True
        str_strip_whitespace = True

    @field_validator("tags")
    @classmethod
    def normalise_tags(cls, value: List[str]) -> List[str]:
        return _lowercase_tags(value)


class BlogPostUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    slug: Optional[str] = Field(default=None, pattern=SLUG_PATTERN)
    excerpt: Optional[str] = Field(default=None, min_length=1, max_length=500)
    content: Optional[str] = Field(default=None, min_length=1)
    featured_image: Optional[FeaturedImage] = Field(default=None, alias="featuredImage")
    category: Optional[BlogCategory] = None
    tags: Optional[List[str]] = None
    author: Optional[Author] = None
    status: Optional[BlogStatus] = None
    seo: Optional[SeoFields] = None
    featured: Optional[bool] = None

    class Config:
        populate_by_name = True
        str_strip_whitespace = True

    @field_validator("tags")
    @classmethod
    def normalise_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _lowercase_tags(value)

    def changes(self) -> Dict[str, Any]:
        """Fields sent in the request; an explicit null leaves the stored value alone."""
        return {
            key: value
            for key, value in self.model_dump(by_alias=True, exclude_unset=True).items()
            if value is not None
        }

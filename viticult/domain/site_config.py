"""Site-wide configuration (tag manager, analytics, SEO defaults)."""
import re
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

GTM_ID_PATTERN = re.compile(r"^GTM-[A-Z0-9]+$")
GA_ID_PATTERN = re.compile(r"^G-[A-Z0-9]+$")

DEFAULT_ROBOTS_TXT = (
    "User-agent: *\n"
    "Disallow: /admin\n"
    "Disallow: /api/\n"
    "Allow: /\n"
    "\n"
    "Sitemap: https://yourdomain.com/sitemap.xml"
)

# Fallback served when the configuration cannot be read
MINIMAL_ROBOTS_TXT = "User-agent: *\nDisallow: /admin"

DEFAULT_SITE_CONFIG: Dict[str, Dict[str, Any]] = {
    "gtm": {"containerId": "", "enabled": False},
    "searchConsole": {"verificationCode": "", "sitemapUrl": "/sitemap.xml", "enabled": False},
    "googleAnalytics": {"measurementId": "", "enabled": False},
    "seo": {
        "defaultTitle": "ViticultWhisky - Premium Cask Investment",
        "defaultDescription": (
            "Invest in premium Scottish whisky casks. Secure, sustainable, "
            "and profitable alternative investments."
        ),
        "defaultKeywords": [
            "whisky investment",
            "cask investment",
            "scottish whisky",
            "alternative investment",
        ],
        "robotsTxt": DEFAULT_ROBOTS_TXT,
    },
    "socialMedia": {
        "ogImage": "/whisky/hero/viticult_whisky_cask_investment43.webp",
        "twitterHandle": "",
        "facebookAppId": "",
    },
}

CONFIG_SECTIONS = tuple(DEFAULT_SITE_CONFIG)


class GtmSection(BaseModel):
    container_id: Optional[str] = Field(default=None, alias="containerId")
    enabled: Optional[bool] = None

    class Config:
        populate_by_name = True

    @field_validator("container_id")
    @classmethod
    def check_container_id(cls, value: Optional[str]) -> Optional[str]:
        if value and not GTM_ID_PATTERN.fullmatch(value):
            raise ValueError("Invalid GTM container ID format")
        return value


class SearchConsoleSection(BaseModel):
    verification_code: Optional[str] = Field(default=None, alias="verificationCode")
    sitemap_url: Optional[str] = Field(default=None, alias="sitemapUrl")
    enabled: Optional[bool] = None

    class Config:
        populate_by_name = True


class GoogleAnalyticsSection(BaseModel):
    measurement_id: Optional[str] = Field(default=None, alias="measurementId")
    enabled: Optional[bool] = None

    class Config:
        populate_by_name = True

    @field_validator("measurement_id")
    @classmethod
    def check_measurement_id(cls, value: Optional[str]) -> Optional[str]:
        if value and not GA_ID_PATTERN.fullmatch(value):
            raise ValueError("Invalid GA4 Measurement ID format")
        return value


class SeoSection(BaseModel):
    default_title: Optional[str] = Field(default=None, alias="defaultTitle")
    default_description: Optional[str] = Field(default=None, alias="defaultDescription")
    default_keywords: Optional[List[str]] = Field(default=None, alias="defaultKeywords")
    robots_txt: Optional[str] = Field(default=None, alias="robotsTxt")

    class Config:
        populate_by_name = True


class SocialMediaSection(BaseModel):
    og_image: Optional[str] = Field(default=None, alias="ogImage")
    twitter_handle: Optional[str] = Field(default=None, alias="twitterHandle")
    facebook_app_id: Optional[str] = Field(default=None, alias="facebookAppId")

    class Config:
        populate_by_name = True


class SiteConfigUpdate(BaseModel):
    """Admin update; each section present is merged into the stored one."""
    gtm: Optional[GtmSection] = None
    search_console: Optional[SearchConsoleSection] = Field(default=None, alias="searchConsole")
    google_analytics: Optional[GoogleAnalyticsSection] = Field(default=None, alias="googleAnalytics")
    seo: Optional[SeoSection] = None
    social_media: Optional[SocialMediaSection] = Field(default=None, alias="socialMedia")

    class Config:
        populate_by_name = True

    def section_changes(self) -> Dict[str, Dict[str, Any]]:
        """Camel-cased ``{section: {field: value}}`` for fields the client sent."""
        changes = {}
        for name in self.model_fields_set:
            section = getattr(self, name)
            if section is None:
                continue
            alias = type(self).model_fields[name].alias or name
            values = section.model_dump(by_alias=True, exclude_unset=True)
            if values:
                changes[alias] = values
        return changes


class GtmTestRequest(BaseModel):
    container_id: Optional[str] = Field(default=None, alias="containerId")

    class Config:
        populate_by_name = True

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from pegplug_api.core.clock import ensure_aware
from pegplug_api.domain.regions import Coordinate, GeofenceRegion
from pegplug_api.domain.reward_policy import RewardRules, daily_spin_allotment
from pegplug_api.models.deal import Deal
from pegplug_api.models.merchant import Location, Merchant
from pegplug_api.models.redemption import Redemption
from pegplug_api.models.user import User

# meta: schema: pegplug-rewards


def _aware(value: datetime | None) -> datetime | None:
    return ensure_aware(value) if value is not None else None


class CoordinatePayload(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class MemberResponse(BaseModel):
    id: str
    email: str
    displayName: str
    membershipTier: str
    availableSpins: int
    dailyAllotment: int
    lastSpinDate: Optional[datetime]
    notificationsEnabled: bool

    @classmethod
    def from_record(cls, user: User, rules: RewardRules) -> "MemberResponse":
        return cls(
            id=user.id,
            email=user.email or "",
            displayName=user.display_name or "",
            membershipTier=user.membership_tier,
            availableSpins=user.available_spins or 0,
            dailyAllotment=daily_spin_allotment(user.membership_tier, rules),
            lastSpinDate=_aware(user.last_spin_date),
            notificationsEnabled=bool(user.notifications_enabled),
        )


class PreferencesUpdateRequest(BaseModel):
    notificationsEnabled: Optional[bool] = Field(None, description="Opt in or out of push notifications")
    pushToken: Optional[str] = Field(None, max_length=256, description="Device push token")


class DealResponse(BaseModel):
    id: str
    merchantId: str
    title: str
    description: Optional[str]
    terms: Optional[str]
    imageUrl: Optional[str]
    locationIds: list[str]
    startDate: Optional[datetime]
    endDate: Optional[datetime]

    @classmethod
    def from_record(cls, deal: Deal) -> "DealResponse":
        return cls(
            id=deal.id,
            merchantId=deal.merchant_id,
            title=deal.title,
            description=deal.description,
            terms=deal.terms,
            imageUrl=deal.image_url,
            locationIds=list(deal.location_ids or []),
            startDate=_aware(deal.start_date),
            endDate=_aware(deal.end_date),
        )


class MerchantResponse(BaseModel):
    id: str
    name: str
    logo: Optional[str]
    merchantType: Optional[str]
    geofenceRadius: float

    @classmethod
    def from_record(cls, merchant: Merchant) -> "MerchantResponse":
        return cls(
            id=merchant.id,
            name=merchant.name,
            logo=merchant.logo,
            merchantType=merchant.merchant_type,
            geofenceRadius=merchant.geofence_radius,
        )


class LocationResponse(BaseModel):
    id: str
    merchantId: str
    name: str
    address: Optional[str]
    latitude: float
    longitude: float

    @classmethod
    def from_record(cls, location: Location) -> "LocationResponse":
        return cls(
            id=location.id,
            merchantId=location.merchant_id,
            name=location.name,
            address=location.address,
            latitude=location.latitude,
            longitude=location.longitude,
        )


class RedemptionResponse(BaseModel):
    id: str
    userId: str
    dealId: str
    merchantId: str
    locationId: str
    status: str
    timestamp: datetime
    validityPeriod: datetime
    remainingSeconds: int
    isValid: bool
    notificationSent: bool
    completedAt: Optional[datetime]
    expiredAt: Optional[datetime]
    expiryReason: Optional[str]

    @classmethod
    def from_record(cls, redemption: Redemption, now: datetime) -> "RedemptionResponse":
        remaining = redemption.remaining_time(now).total_seconds() if redemption.is_pending else 0
        return cls(
            id=redemption.id,
            userId=redemption.user_id,
            dealId=redemption.deal_id,
            merchantId=redemption.merchant_id,
            locationId=redemption.location_id,
            status=redemption.status,
            timestamp=ensure_aware(redemption.timestamp),
            validityPeriod=ensure_aware(redemption.validity_period),
            remainingSeconds=max(int(remaining), 0),
            isValid=redemption.is_valid_at(now),
            notificationSent=bool(redemption.notification_sent),
            completedAt=_aware(redemption.completed_at),
            expiredAt=_aware(redemption.expired_at),
            expiryReason=redemption.expiry_reason,
        )


class RedemptionDetailResponse(BaseModel):
    redemption: RedemptionResponse
    deal: Optional[DealResponse]
    merchant: Optional[MerchantResponse]
    location: Optional[LocationResponse]


class RedemptionHistoryResponse(BaseModel):
    items: list[RedemptionDetailResponse]
    counts: dict[str, int]


class RedeemRequest(BaseModel):
    coordinate: CoordinatePayload
    deviceId: str = Field("", max_length=128)


class SpinRequest(BaseModel):
    merchantId: str = Field(..., min_length=1, max_length=64)
    locationId: str = Field(..., min_length=1, max_length=64)


class SpinResponse(BaseModel):
    spinId: str
    won: bool
    deal: Optional[DealResponse]
    availableSpins: int
    winProbability: float


class ClaimRequest(BaseModel):
    coordinate: Optional[CoordinatePayload] = None
    deviceId: str = Field("", max_length=128)


class GeofenceEventRequest(BaseModel):
    merchantId: Optional[str] = Field(None, max_length=64)
    locationId: Optional[str] = Field(None, max_length=64)
    regionIdentifier: Optional[str] = Field(None, max_length=129, description="Legacy merchant_location identifier")
    coordinate: Optional[CoordinatePayload] = None

    @model_validator(mode="after")
    def validate_region(self) -> "GeofenceEventRequest":
        if self.regionIdentifier:
            return self
        if not self.merchantId or not self.locationId:
            raise ValueError("merchantId and locationId or regionIdentifier must be provided")
        return self


class GeofenceEntryResponse(BaseModel):
    region: Optional[str]
    dealCount: int
    staged: list[RedemptionResponse]
    skippedDealIds: list[str]
    notified: bool
    error: Optional[str]


class GeofenceRegionResponse(BaseModel):
    identifier: str
    merchantId: str
    locationId: str
    latitude: float
    longitude: float
    radiusMeters: float

    @classmethod
    def from_region(cls, region: GeofenceRegion) -> "GeofenceRegionResponse":
        return cls(
            identifier=region.key.identifier,
            merchantId=region.key.merchant_id,
            locationId=region.key.location_id,
            latitude=region.center.latitude,
            longitude=region.center.longitude,
            radiusMeters=region.radius_meters,
        )


class HomeFeedResponse(BaseModel):
    deals: list[DealResponse]
    merchants: list[MerchantResponse]
    locations: list[LocationResponse]
    activeRedemptions: dict[str, RedemptionResponse]

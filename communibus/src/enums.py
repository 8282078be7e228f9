from enum import IntEnum


class AppID(IntEnum):
    CUSTOMER = 1
    OPERATOR = 2


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class AccountStatus(IntEnum):
    ACTIVE = 1
    SUSPENDED = 2


class CompanyStatus(IntEnum):
    UNDER_VERIFICATION = 1
    VERIFIED = 2
    SUSPENDED = 3


class Day(IntEnum):
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7


class ServiceFrequency(IntEnum):
    DAILY = 1
    WEEKDAYS = 2
    WEEKENDS = 3
    CUSTOM = 4


class PledgeFrequency(IntEnum):
    DAILY = 1
    TWO_THREE_TIMES_WEEK = 2
    WEEKLY = 3
    MONTHLY = 4


class ProposalStatus(IntEnum):
    OPEN = 1
    THRESHOLD_MET = 2
    APPROVED = 3
    REJECTED = 4
    CONVERTED_TO_ROUTE = 5


class VoteType(IntEnum):
    INTERESTED = 1
    MAYBE = 2
    PLEDGE = 3


class InvitationStatus(IntEnum):
    PENDING = 1
    VIEWED = 2
    ACCEPTED = 3
    DECLINED = 4


class PrivacyLevel(IntEnum):
    PRIVATE = 1
    AREA_ONLY = 2
    FULL_SHARING = 3


class ViabilityRecommendation(IntEnum):
    LAUNCH = 1
    WAIT_FOR_MORE_PLEDGES = 2
    NOT_VIABLE = 3

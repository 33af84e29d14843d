"""Domain event names published to the notification dispatcher"""


class EventType:
    SUBSCRIPTION_ACTIVATED = "subscription.activated"
    SUBSCRIPTION_RENEWED = "subscription.renewed"
    SUBSCRIPTION_RENEWAL_FAILED = "subscription.renewal_failed"
    SUBSCRIPTION_PAST_DUE = "subscription.past_due"
    SUBSCRIPTION_EXPIRED = "subscription.expired"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_FAILED = "payment.failed"
    WALLET_CREDITED = "wallet.credited"
    WALLET_DEDUCTED = "wallet.deducted"
    WALLET_EARNINGS_CREDITED = "wallet.earnings_credited"
    COURSE_ENROLLED = "course.enrolled"

"""The twelve COAR Notify patterns exchanged with review services.

Three are sent by this instance (RequestReview, RequestEndorsement, UndoOffer);
nine are received. See https://coar-notify.net/ for the pattern catalogue.
"""

from coar_exchange.models.enums import PatternDirection
from coar_exchange.patterns.registry import PatternDefinition, PatternField, PatternRegistry

SEND = PatternDirection.SEND
RECEIVE = PatternDirection.RECEIVE


def _service(name: str, description: str, inbox_required: bool) -> PatternField:
    return PatternField(
        name,
        type="NotifyService",
        required=True,
        description=description,
        properties=(
            PatternField("id", required=True, description="Service identifier"),
            PatternField("inbox", required=inbox_required, description="Service LDN inbox URL"),
            PatternField("type", default="Service"),
        ),
    )


def _actor(description: str = "Person or service responsible for the activity") -> PatternField:
    return PatternField(
        "actor",
        type="NotifyActor",
        description=description,
        properties=(
            PatternField("id", description="ORCID or service URI"),
            PatternField("name"),
            PatternField("type", default="Person"),
        ),
    )


def _outbound_parties() -> tuple[PatternField, ...]:
    return (
        _service("origin", "This repository service", inbox_required=True),
        _service("target", "Service receiving the request", inbox_required=True),
    )


def _inbound_parties() -> tuple[PatternField, ...]:
    return (
        _service("origin", "Service sending the notification", inbox_required=False),
        _service("target", "This repository service", inbox_required=False),
    )


def _in_reply_to(required: bool) -> PatternField:
    return PatternField(
        "inReplyTo",
        required=required,
        description="Notification id of the request this responds to",
    )


def _summary(required: bool = False) -> PatternField:
    return PatternField("summary", required=required, description="Human readable summary")


def _scholarly_article_object(description: str) -> PatternField:
    return PatternField(
        "object",
        type="NotifyObject",
        required=True,
        description=description,
        properties=(
            PatternField("id", required=True, description="DOI URL of the preprint"),
            PatternField("ietf:cite-as", required=True, description="Persistent citation URI"),
            PatternField("type", type="array", required=True, default=["ScholarlyArticle"]),
            PatternField(
                "ietf:item",
                type="object",
                description="Accessible representation of the preprint",
                properties=(
                    PatternField("id", description="Repository URL or landing page"),
                    PatternField("mediaType", default="text/html"),
                    PatternField("type", default="WebPage"),
                ),
            ),
        ),
    )


def _offer_object() -> PatternField:
    return PatternField(
        "object",
        type="NotifyObject",
        description="The original offer this responds to",
        properties=(PatternField("id", description="Notification id of the offer"),),
    )


def _context_article() -> PatternField:
    return PatternField(
        "context",
        type="ScholarlyArticle",
        description="The preprint the announced resource relates to",
        properties=(
            PatternField("id", description="DOI or URL of the preprint"),
            PatternField("type", type="array", default=["ScholarlyArticle"]),
        ),
    )


def _response_pattern(name: str, description: str) -> PatternDefinition:
    return PatternDefinition(
        name=name,
        direction=RECEIVE,
        activity_type=name,
        description=description,
        fields=(
            _in_reply_to(required=True),
            _offer_object(),
            _summary(),
            *_inbound_parties(),
            _actor(),
        ),
    )


def _announce_pattern(
    name: str,
    domain_type: str | None,
    description: str,
    object_description: str,
    in_reply_to: bool = True,
) -> PatternDefinition:
    fields = [
        PatternField(
            "object",
            type="NotifyObject",
            required=True,
            description=object_description,
            properties=(
                PatternField("id", required=True, description="URL of the announced resource"),
                PatternField("ietf:cite-as", description="Persistent citation URI"),
                PatternField("type", type="array", required=True),
            ),
        ),
        _context_article(),
    ]
    if in_reply_to:
        fields.append(_in_reply_to(required=False))
    fields.extend([_summary(), *_inbound_parties(), _actor()])
    return PatternDefinition(
        name=name,
        direction=RECEIVE,
        activity_type="Announce",
        domain_type=domain_type,
        description=description,
        fields=tuple(fields),
    )


REQUEST_REVIEW = PatternDefinition(
    name="RequestReview",
    direction=SEND,
    activity_type="Offer",
    domain_type="coar-notify:ReviewAction",
    description="Request peer review of a preprint from an external review service",
    fields=(
        _scholarly_article_object("The preprint to be reviewed"),
        _actor("Editor requesting the review"),
        *_outbound_parties(),
    ),
)

REQUEST_ENDORSEMENT = PatternDefinition(
    name="RequestEndorsement",
    direction=SEND,
    activity_type="Offer",
    domain_type="coar-notify:EndorsementAction",
    description="Request endorsement of a preprint from an external endorsement service",
    fields=(
        _scholarly_article_object("The preprint to be endorsed"),
        _actor("Editor requesting the endorsement"),
        *_outbound_parties(),
    ),
)

UNDO_OFFER = PatternDefinition(
    name="UndoOffer",
    direction=SEND,
    activity_type="Undo",
    description="Withdraw a previously sent review or endorsement request",
    fields=(
        PatternField(
            "object",
            type="NotifyObject",
            required=True,
            description="The original offer being withdrawn",
            properties=(PatternField("id", required=True, description="Notification id of the original request"),),
        ),
        _in_reply_to(required=True),
        _summary(),
        _actor("Person withdrawing the request"),
        *_outbound_parties(),
    ),
)

ACCEPT = _response_pattern("Accept", "Service has accepted the review or endorsement request")
REJECT = _response_pattern("Reject", "Service has rejected the review or endorsement request")
TENTATIVE_ACCEPT = _response_pattern("TentativeAccept", "Service has tentatively accepted the request (may change)")
TENTATIVE_REJECT = _response_pattern("TentativeReject", "Service has tentatively rejected the request (may reconsider)")

ANNOUNCE_REVIEW = _announce_pattern(
    "AnnounceReview",
    "coar-notify:ReviewAction",
    "A review of the preprint has been published",
    "The published review",
)
ANNOUNCE_ENDORSEMENT = _announce_pattern(
    "AnnounceEndorsement",
    "coar-notify:EndorsementAction",
    "An endorsement of the preprint has been published",
    "The published endorsement",
)
ANNOUNCE_RESOURCE = _announce_pattern(
    "AnnounceResource",
    None,
    "A service result or resource has been published",
    "The published resource",
)

ANNOUNCE_RELATIONSHIP = PatternDefinition(
    name="AnnounceRelationship",
    direction=RECEIVE,
    activity_type="Announce",
    domain_type="coar-notify:RelationshipAction",
    description="A relationship between resources has been established",
    fields=(
        PatternField(
            "object",
            type="Relationship",
            required=True,
            description="Relationship triple linking two resources",
            properties=(
                PatternField("id", required=True),
                PatternField("type", required=True, default="Relationship"),
                PatternField("as:subject", required=True, description="Subject resource URI"),
                PatternField("as:relationship", required=True, description="Relationship URI"),
                PatternField("as:object", required=True, description="Related resource URI"),
            ),
        ),
        _context_article(),
        _summary(),
        *_inbound_parties(),
        _actor(),
    ),
)

UNPROCESSABLE = PatternDefinition(
    name="Unprocessable",
    direction=RECEIVE,
    activity_type="Flag",
    domain_type="coar-notify:UnprocessableNotification",
    description="Service could not process our notification",
    fields=(
        PatternField(
            "object",
            type="NotifyObject",
            required=True,
            description="The notification that could not be processed",
            properties=(PatternField("id", required=True),),
        ),
        _in_reply_to(required=True),
        _summary(required=True),
        *_inbound_parties(),
        _actor(),
    ),
)

BUILTIN_PATTERNS: tuple[PatternDefinition, ...] = (
    REQUEST_REVIEW,
    REQUEST_ENDORSEMENT,
    UNDO_OFFER,
    ACCEPT,
    REJECT,
    TENTATIVE_ACCEPT,
    TENTATIVE_REJECT,
    ANNOUNCE_REVIEW,
    ANNOUNCE_ENDORSEMENT,
    ANNOUNCE_RELATIONSHIP,
    ANNOUNCE_RESOURCE,
    UNPROCESSABLE,
)


def build_default_registry() -> PatternRegistry:
    """Register every built-in pattern; refuse to start on a broken table."""
    registry = PatternRegistry()
    skipped = [p for p in BUILTIN_PATTERNS if not registry.register(p)]
    if skipped:
        raise RuntimeError(f"{len(skipped)} built-in pattern definition(s) failed to register")
    return registry

class AnnowireError(Exception):
    """Represent a base class for all annowire-specific failures.

    Catch this type when you want to handle any annowire error path without
    matching each concrete exception class individually.
    """


class AnnowireInvalidMarkerError(AnnowireError, TypeError):
    """Signal a marker applied to a target it does not support.

    Raised at decoration time, for example when ``Inject`` is used as a class
    decorator or ``Controller`` decorates a function.

    Typical fixes include moving property markers into ``typing.Annotated``
    metadata and using class markers only on classes.
    """


class AnnowireScanError(AnnowireError):
    """Signal that a source file or class could not be loaded or introspected.

    The scanner catches this per file and skips the offending module, so the
    error is only visible through logging.
    """


class AnnowireResolutionError(AnnowireError):
    """Signal that a dependency could not be produced for a property.

    Raised internally when the backing container lookup and default
    construction both fail. ``resolve_dependencies`` catches it, logs it and
    leaves the property unset.
    """

    def __init__(self, message: str, *, service_id: object = None, owner: str | None = None) -> None:
        super().__init__(message)
        self.service_id = service_id
        self.owner = owner


class AnnowirePropertyAssignmentError(AnnowireError):
    """Signal that a resolved value could not be written to a property.

    Common triggers are frozen dataclasses, read-only descriptors and values
    rejected by the declared type. The resolvers log it and leave the property
    unchanged.
    """


class AnnowireProxyResolutionError(AnnowireError):
    """Signal that a lazy proxy could not obtain its target.

    Raised internally on the first forwarded operation; the proxy logs it and
    becomes permanently inert.
    """


class AnnowireServiceNotRegisteredError(AnnowireError, LookupError):
    """Signal that a key has no registration in ``annowire.Container``.

    Typical fixes include registering the service with ``add_instance``,
    ``add_singleton`` or ``add_factory``, or marking the class with ``@Bean``
    and running ``BeanRegistrar``.
    """

    def __init__(self, key: object) -> None:
        super().__init__(f"Service {key!r} is not registered.")
        self.key = key

"""Resource builder: App spec to dependent resource definitions.

Exports:
    build           -- Build the definition of one DependentKind for an App.
    BUILDERS        -- Closed DependentKind -> builder mapping.
    render          -- Render a named manifest template to bytes.
    container_image -- Read the first container image of a Deployment object.
"""

from ingressmgr.builder.builders import (
    BUILDERS,
    Definition,
    build,
    build_endpoint,
    build_route,
    build_workload,
    container_image,
)
from ingressmgr.builder.render import render

__all__ = [
    "BUILDERS",
    "Definition",
    "build",
    "build_endpoint",
    "build_route",
    "build_workload",
    "container_image",
    "render",
]

"""Repository object types and their REST resource layout."""

from dataclasses import dataclass
from enum import Enum

# =============================================================================
# Remote field names
# =============================================================================

NAME_FIELD = "Name"
SCRIPT_FIELD = "Script"
DEFINITION_FIELD = "Definition"
PROGRAM_LANGUAGE_FIELD = "Program Language"
PROGRAM_LANGUAGE = "JS"

# Script name exempt from the file name / function name check
DECLARATIONS = "(declarations)"

SCRIPT_EXTENSIONS = ("js", "ts")
WEBTEMP_EXTENSION = "html"

# =============================================================================
# Constant resource paths and query parameters
# =============================================================================

WORKSPACE_SEGMENT = "workspace"
WORKSPACES_PATH = "data/Workspace/Repository Workspace"
TEST_CONNECTION_PATH = "workspace/MAIN/Application"

EDITABLE_WORKSPACE_STATUSES = ("Created", "Checkpointed", "Edit-In-Progress")

PAGE_SIZES = (10, 20, 50, 100, 200, 500)


class ObjectType(str, Enum):
    """Repository object categories handled by the editor."""

    SERVICE = "service"
    """Business Service"""

    BUSCOMP = "buscomp"
    """Business Component"""

    APPLET = "applet"
    """Applet"""

    APPLICATION = "application"
    """Application"""

    WEBTEMP = "webtemp"
    """Web Template"""

    @property
    def descriptor(self) -> "ObjectDescriptor":
        return DESCRIPTORS[self]

    @property
    def has_scripts(self) -> bool:
        """True for types with a server script sub-collection."""
        return bool(DESCRIPTORS[self].child)


@dataclass(frozen=True)
class ObjectDescriptor:
    """REST layout of one object type."""

    parent: str
    """Parent resource path segment"""

    child: str
    """Script sub-collection segment, empty for web templates"""

    field: str
    """Field holding the editable content"""

    label: str
    """Human readable name"""

    base_scripts: tuple[str, ...] = ()
    """Standard event handlers offered for new scripts"""


DESCRIPTORS: dict[ObjectType, ObjectDescriptor] = {
    ObjectType.SERVICE: ObjectDescriptor(
        parent="Business Service",
        child="Business Service Server Script",
        field=SCRIPT_FIELD,
        label="Business Service",
        base_scripts=(
            "Service_PreInvokeMethod",
            "Service_InvokeMethod",
            "Service_PreCanInvokeMethod",
            DECLARATIONS,
        ),
    ),
    ObjectType.BUSCOMP: ObjectDescriptor(
        parent="Business Component",
        child="BusComp Server Script",
        field=SCRIPT_FIELD,
        label="Business Component",
        base_scripts=(
            "BusComp_PreSetFieldValue",
            "BusComp_SetFieldValue",
            "BusComp_PreGetFieldValue",
            "BusComp_PreCopyRecord",
            "BusComp_CopyRecord",
            "BusComp_PreNewRecord",
            "BusComp_NewRecord",
            "BusComp_PreAssociate",
            "BusComp_Associate",
            "BusComp_PreDeleteRecord",
            "BusComp_DeleteRecord",
            "BusComp_PreWriteRecord",
            "BusComp_WriteRecord",
            "BusComp_ChangeRecord",
            "BusComp_PreQuery",
            "BusComp_Query",
            "BusComp_PreInvokeMethod",
            "BusComp_InvokeMethod",
            DECLARATIONS,
        ),
    ),
    ObjectType.APPLET: ObjectDescriptor(
        parent="Applet",
        child="Applet Server Script",
        field=SCRIPT_FIELD,
        label="Applet",
        base_scripts=(
            "WebApplet_PreInvokeMethod",
            "WebApplet_InvokeMethod",
            "WebApplet_ShowControl",
            "WebApplet_ShowListColumn",
            "WebApplet_PreCanInvokeMethod",
            "WebApplet_Load",
            DECLARATIONS,
        ),
    ),
    ObjectType.APPLICATION: ObjectDescriptor(
        parent="Application",
        child="Application Server Script",
        field=SCRIPT_FIELD,
        label="Application",
        base_scripts=(
            "Application_Start",
            "Application_Close",
            "Application_PreInvokeMethod",
            "Application_InvokeMethod",
            "Application_PreNavigate",
            "Application_Navigate",
            DECLARATIONS,
        ),
    ),
    ObjectType.WEBTEMP: ObjectDescriptor(
        parent="Web Template",
        child="",
        field=DEFINITION_FIELD,
        label="Web Template",
    ),
}

# (arguments, returns ContinueOperation)
_HANDLER_SIGNATURES: dict[str, tuple[str, bool]] = {
    "Service_PreInvokeMethod": ("MethodName, Inputs, Outputs", True),
    "Service_InvokeMethod": ("MethodName, Inputs, Outputs", False),
    "Service_PreCanInvokeMethod": ("MethodName, &CanInvoke", True),
    "BusComp_PreSetFieldValue": ("FieldName, FieldValue", True),
    "BusComp_SetFieldValue": ("FieldName", False),
    "BusComp_PreGetFieldValue": ("FieldName, &FieldValue", True),
    "BusComp_PreCopyRecord": ("", True),
    "BusComp_CopyRecord": ("", False),
    "BusComp_PreNewRecord": ("", True),
    "BusComp_NewRecord": ("", False),
    "BusComp_PreAssociate": ("", True),
    "BusComp_Associate": ("", False),
    "BusComp_PreDeleteRecord": ("", True),
    "BusComp_DeleteRecord": ("", False),
    "BusComp_PreWriteRecord": ("", True),
    "BusComp_WriteRecord": ("", False),
    "BusComp_ChangeRecord": ("", False),
    "BusComp_PreQuery": ("", True),
    "BusComp_Query": ("", False),
    "BusComp_PreInvokeMethod": ("MethodName", True),
    "BusComp_InvokeMethod": ("MethodName", False),
    "WebApplet_PreInvokeMethod": ("MethodName", True),
    "WebApplet_InvokeMethod": ("MethodName", False),
    "WebApplet_ShowControl": ("ControlName, Property, Mode, &HTML", False),
    "WebApplet_ShowListColumn": ("ColumnName, Property, Mode, &HTML", False),
    "WebApplet_PreCanInvokeMethod": ("MethodName, &CanInvoke", True),
    "WebApplet_Load": ("", False),
    "Application_Start": ("CommandLine", False),
    "Application_Close": ("", False),
    "Application_PreInvokeMethod": ("MethodName", True),
    "Application_InvokeMethod": ("MethodName", False),
    "Application_PreNavigate": ("DestViewName, DestBusObjName", True),
    "Application_Navigate": ("", False),
}


def base_script(name: str) -> str:
    """Return the initial body of a new script.

    Standard event handlers get their usual signature, ``(declarations)``
    starts empty and any other name gets an empty function.

    Examples:
        >>> base_script("BusComp_Query")
        'function BusComp_Query ()\\n{\\n\\n}'
        >>> base_script("MyHelper")
        'function MyHelper(){\\n\\n}'
    """
    if name == DECLARATIONS:
        return ""
    signature = _HANDLER_SIGNATURES.get(name)
    if signature is None:
        return f"function {name}(){{\n\n}}"
    arguments, returns = signature
    body = "\treturn (ContinueOperation);" if returns else ""
    return f"function {name} ({arguments})\n{{\n{body}\n}}"

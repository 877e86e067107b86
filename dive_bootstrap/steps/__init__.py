from .step_10_install_uv import InstallUvStep
from .step_15_install_nodejs import InstallNodejsStep
from .step_20_install_python import InstallPythonStep
from .step_30_install_host_deps import InstallHostDepsStep
from .step_40_install_tool_deps import InstallToolDepsStep

__all__ = [
    "InstallUvStep",
    "InstallNodejsStep",
    "InstallPythonStep",
    "InstallHostDepsStep",
    "InstallToolDepsStep",
]

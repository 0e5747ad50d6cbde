"""package.json updates for projects that are run with the UI5 tooling."""

import copy
import logging

from odata_service_writer.editor import ProjectEditor

logger = logging.getLogger(__name__)

UI5_TOOLING = "@sap/ux-ui5-tooling"
MOCKSERVER_MIDDLEWARE = "@sap-ux/ui5-middleware-fe-mockserver"
MOCKSERVER_MIDDLEWARE_VERSION = "2"
START_MOCK_SCRIPT = 'fiori run --config ./ui5-mock.yaml --open "index.html"'


def update_package_json(path: str, editor: ProjectEditor, add_mock_server: bool) -> None:
    """
    Mark package.json as a UI5 app served by the UI5 tooling.

    Args:
        path: package.json location
        editor: Staged editor
        add_mock_server: Also add the mock server middleware and start-mock script
    """
    package_json = editor.read_json(path)
    before = copy.deepcopy(package_json)

    ui5_dependencies = (package_json.get("ui5") or {}).get("dependencies")
    if isinstance(ui5_dependencies, list) and UI5_TOOLING not in ui5_dependencies:
        ui5_dependencies.append(UI5_TOOLING)

    if add_mock_server:
        dev_dependencies = package_json.setdefault("devDependencies", {})
        dev_dependencies.setdefault(MOCKSERVER_MIDDLEWARE, MOCKSERVER_MIDDLEWARE_VERSION)
        if isinstance(ui5_dependencies, list) and MOCKSERVER_MIDDLEWARE not in ui5_dependencies:
            ui5_dependencies.append(MOCKSERVER_MIDDLEWARE)
        package_json.setdefault("scripts", {}).setdefault("start-mock", START_MOCK_SCRIPT)

    if package_json != before:
        editor.write_json(path, package_json)
        logger.debug("Updated %s", path)

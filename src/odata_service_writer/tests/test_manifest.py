"""
manifest.json data source tests.

Validates:
- MAN-001: A first service is added in flat layout with its annotations and model
- MAN-002: A second service moves the flat service into its own folder
- MAN-003: Services without name get a stable name
- MAN-004: Repeated updates converge
- MAN-005: Required manifest content is checked
- MAN-006: Removal deletes the service, unshared annotations and models
"""

import json
import os

import pytest

from odata_service_writer.data import enhance_data
from odata_service_writer.errors import RequiredProjectFileNotFound, RequiredProjectPropertyNotFound
from odata_service_writer.manifest import delete_service_from_manifest, update_manifest
from odata_service_writer.tests.shared_fixtures import (
    ANNOTATION_NAME,
    ANNOTATION_XML,
    METADATA,
    SERVICE_PATH,
    read_manifest,
)
from odata_service_writer.types import OdataService

CATALOG_URI = (
    "/sap/opu/odata/IWFND/CATALOGSERVICE;v=2/"
    f"Annotations(TechnicalName='{ANNOTATION_NAME}',Version='0001')/$value/"
)


def _add(root, editor, data):
    service = OdataService.from_dict(data)
    enhance_data(root, service, editor)
    plan = update_manifest(root, service, editor)
    return service, plan


def _flat_project(make_project, manifest_data):
    """Project with mainService and its annotation in flat layout, files on disk."""
    data_sources = manifest_data["sap.app"]["dataSources"]
    data_sources["mainService"] = {
        "uri": SERVICE_PATH,
        "type": "OData",
        "settings": {
            "annotations": [ANNOTATION_NAME],
            "localUri": "localService/metadata.xml",
            "odataVersion": "2.0",
        },
    }
    data_sources[ANNOTATION_NAME] = {
        "uri": CATALOG_URI,
        "type": "ODataAnnotation",
        "settings": {"localUri": f"localService/{ANNOTATION_NAME}.xml"},
    }
    manifest_data["sap.ui5"]["models"][""] = {"dataSource": "mainService", "preload": True, "settings": {}}
    return make_project(
        manifest=manifest_data,
        files={
            "webapp/localService/metadata.xml": METADATA,
            f"webapp/localService/{ANNOTATION_NAME}.xml": ANNOTATION_XML,
        },
    )


# ============================================================================
# Add
# ============================================================================


@pytest.mark.manifest
def test_first_service_uses_flat_layout(project, editor, edmx_service):
    """
    MAN-001: A first service is added in flat layout with its annotations and model

    Given: A manifest without data sources
    When: Adding an EDMX service with one catalog annotation
    Then: mainService and its annotation are added below localService/ and bound to ''
    """
    _, plan = _add(project, editor, edmx_service)

    manifest = read_manifest(editor, project)
    assert manifest["sap.app"]["dataSources"] == {
        "mainService": {
            "uri": SERVICE_PATH,
            "type": "OData",
            "settings": {
                "annotations": [ANNOTATION_NAME],
                "localUri": "localService/metadata.xml",
                "odataVersion": "2.0",
            },
        },
        ANNOTATION_NAME: {
            "uri": CATALOG_URI,
            "type": "ODataAnnotation",
            "settings": {"localUri": f"localService/{ANNOTATION_NAME}.xml"},
        },
    }
    assert manifest["sap.ui5"]["models"][""] == {"dataSource": "mainService", "preload": True, "settings": {}}
    assert plan.metadata == "localService/metadata.xml"
    assert plan.annotations == {ANNOTATION_NAME: f"localService/{ANNOTATION_NAME}.xml"}
    assert not plan.migrated


@pytest.mark.manifest
def test_northwind_service_named_main_service(project, editor):
    """
    MAN-003: Services without name get a stable name

    Given: A manifest without data sources
    When: Adding the Northwind service without name
    Then: The data source mainService points to the normalized path
    """
    _add(project, editor, {
        "url": "https://services.odata.org",
        "path": "/V2/Northwind/Northwind.svc",
        "version": "2",
    })

    manifest = read_manifest(editor, project)
    assert manifest["sap.app"]["dataSources"]["mainService"]["uri"] == "/V2/Northwind/Northwind.svc/"


@pytest.mark.manifest
def test_v4_model_settings(project, editor):
    """
    MAN-001: A first service is added in flat layout with its annotations and model

    Given: An OData V4 service with a named model
    When: Adding it
    Then: The model carries the V4 model settings and the version is 4.0
    """
    _add(project, editor, {
        "name": "travel",
        "model": "travelModel",
        "url": "https://sap.example.com",
        "path": "/sap/opu/odata4/sap/travel/",
        "version": "4",
    })

    manifest = read_manifest(editor, project)
    assert manifest["sap.app"]["dataSources"]["travel"]["settings"]["odataVersion"] == "4.0"
    assert manifest["sap.ui5"]["models"]["travelModel"] == {
        "dataSource": "travel",
        "preload": True,
        "settings": {
            "synchronizationMode": "None",
            "operationMode": "Server",
            "autoExpandSelect": True,
            "earlyRequests": True,
        },
    }


@pytest.mark.manifest
def test_local_annotations_entry(project, editor, edmx_service):
    """
    MAN-001: A first service is added in flat layout with its annotations and model

    Given: A service with local annotations
    When: Adding it
    Then: The local annotation data source is listed after the catalog annotation
    """
    edmx_service["localAnnotationsName"] = "annotation"

    _add(project, editor, edmx_service)

    data_sources = read_manifest(editor, project)["sap.app"]["dataSources"]
    assert data_sources["mainService"]["settings"]["annotations"] == [ANNOTATION_NAME, "annotation"]
    assert data_sources["annotation"] == {
        "type": "ODataAnnotation",
        "uri": "annotations/annotation.xml",
        "settings": {"localUri": "annotations/annotation.xml"},
    }


@pytest.mark.manifest
def test_second_service_migrates_flat_layout(make_project, editor, manifest_data):
    """
    MAN-002: A second service moves the flat service into its own folder

    Given: mainService in flat layout with its files on disk
    When: Adding a second service
    Then: The files and localUri values of mainService move to localService/mainService/,
          the new service is written to localService/second/ with its own model
    """
    root = _flat_project(make_project, manifest_data)
    webapp = os.path.join(root, "webapp")

    _, plan = _add(root, editor, {
        "name": "second",
        "url": "https://sap.example.com",
        "path": "/sap/opu/odata/sap/SECOND_SRV",
    })

    data_sources = read_manifest(editor, root)["sap.app"]["dataSources"]
    assert data_sources["mainService"]["settings"]["localUri"] == "localService/mainService/metadata.xml"
    assert data_sources[ANNOTATION_NAME]["settings"]["localUri"] == f"localService/mainService/{ANNOTATION_NAME}.xml"
    assert data_sources["second"]["settings"]["localUri"] == "localService/second/metadata.xml"
    assert read_manifest(editor, root)["sap.ui5"]["models"]["second"]["dataSource"] == "second"

    assert not editor.exists(os.path.join(webapp, "localService", "metadata.xml"))
    assert editor.read(os.path.join(webapp, "localService", "mainService", "metadata.xml")) == METADATA
    assert editor.exists(os.path.join(webapp, "localService", "mainService", f"{ANNOTATION_NAME}.xml"))
    assert plan.migrated
    assert plan.metadata == "localService/second/metadata.xml"


@pytest.mark.manifest
def test_namespaced_service_keeps_layout(make_project, editor, manifest_data):
    """
    MAN-002: A second service moves the flat service into its own folder

    Given: The only service already lives in localService/mainService/
    When: Updating that service again
    Then: It stays in its folder and nothing is migrated
    """
    manifest_data["sap.app"]["dataSources"]["mainService"] = {
        "uri": SERVICE_PATH,
        "type": "OData",
        "settings": {"annotations": [], "localUri": "localService/mainService/metadata.xml", "odataVersion": "2.0"},
    }
    manifest_data["sap.ui5"]["models"][""] = {"dataSource": "mainService", "preload": True, "settings": {}}
    root = make_project(manifest=manifest_data)

    service, plan = _add(root, editor, {"url": "https://sap.example.com", "path": SERVICE_PATH})

    assert service.name == "mainService"
    assert plan.metadata == "localService/mainService/metadata.xml"
    assert not plan.migrated
    assert editor.pending() == {}


@pytest.mark.manifest
def test_unnamed_second_service(make_project, editor, manifest_data):
    """
    MAN-003: Services without name get a stable name

    Given: mainService already exists
    When: Adding another service without name
    Then: It is named service2
    """
    root = _flat_project(make_project, manifest_data)

    service, _ = _add(root, editor, {"url": "https://sap.example.com", "path": "/sap/other/"})

    assert service.name == "service2"
    assert service.model == "service2"
    assert "service2" in read_manifest(editor, root)["sap.app"]["dataSources"]


@pytest.mark.manifest
def test_annotation_named_like_assigned_service_name(make_project, editor, manifest_data):
    """
    MAN-003: Services without name get a stable name

    Given: One OData service foo and no mainService
    When: Adding a service without name whose annotation is called mainService
    Then: The service becomes mainService and the annotation is renamed instead of replacing it
    """
    manifest_data["sap.app"]["dataSources"]["foo"] = {
        "uri": "/foo/", "type": "OData", "settings": {"localUri": "localService/foo/metadata.xml"},
    }
    root = make_project(manifest=manifest_data)

    service, plan = _add(root, editor, {
        "url": "https://sap.example.com",
        "path": "/bar/",
        "annotations": [{"technicalName": "mainService"}],
    })

    data_sources = read_manifest(editor, root)["sap.app"]["dataSources"]
    assert service.name == "mainService"
    assert data_sources["mainService"]["type"] == "OData"
    assert data_sources["mainService"]["uri"] == "/bar/"
    assert data_sources["mainService"]["settings"]["annotations"] == ["mainService_Annotation"]
    assert data_sources["mainService_Annotation"]["type"] == "ODataAnnotation"
    assert plan.annotations == {"mainService_Annotation": "localService/mainService/mainService_Annotation.xml"}


@pytest.mark.manifest
def test_repeated_update_converges(project, editor, edmx_service):
    """
    MAN-004: Repeated updates converge

    Given: A service added once
    When: Adding the identical descriptor again
    Then: manifest.json is unchanged and annotations are not duplicated
    """
    _add(project, editor, dict(edmx_service))
    first = read_manifest(editor, project)

    _add(project, editor, dict(edmx_service))

    second = read_manifest(editor, project)
    assert second == first
    assert second["sap.app"]["dataSources"]["mainService"]["settings"]["annotations"] == [ANNOTATION_NAME]


@pytest.mark.manifest
def test_existing_annotations_keep_order(make_project, editor, manifest_data):
    """
    MAN-004: Repeated updates converge

    Given: A service referencing annotation B
    When: Adding the service with annotations A and B
    Then: B keeps its position and A is appended
    """
    manifest_data["sap.app"]["dataSources"]["mainService"] = {
        "uri": SERVICE_PATH,
        "type": "OData",
        "settings": {"annotations": ["B"], "localUri": "localService/metadata.xml", "odataVersion": "2.0"},
    }
    root = make_project(manifest=manifest_data)

    _add(root, editor, {
        "name": "mainService",
        "url": "https://sap.example.com",
        "path": SERVICE_PATH,
        "annotations": [{"technicalName": "A"}, {"technicalName": "B"}],
    })

    settings = read_manifest(editor, root)["sap.app"]["dataSources"]["mainService"]["settings"]
    assert settings["annotations"] == ["B", "A"]


@pytest.mark.manifest
def test_missing_manifest(make_project, editor, edmx_service):
    """
    MAN-005: Required manifest content is checked

    Given: A project without webapp/manifest.json
    When: Updating the manifest
    Then: RequiredProjectFileNotFound names the file
    """
    root = make_project()
    os.remove(os.path.join(root, "webapp", "manifest.json"))

    with pytest.raises(RequiredProjectFileNotFound, match="manifest.json"):
        _add(root, editor, edmx_service)


@pytest.mark.manifest
def test_missing_app_id(make_project, editor, manifest_data, edmx_service):
    """
    MAN-005: Required manifest content is checked

    Given: A manifest without sap.app.id
    When: Updating the manifest
    Then: RequiredProjectPropertyNotFound is raised and nothing is staged
    """
    del manifest_data["sap.app"]["id"]
    root = make_project(manifest=manifest_data)

    with pytest.raises(RequiredProjectPropertyNotFound):
        _add(root, editor, edmx_service)
    assert editor.pending() == {}


@pytest.mark.manifest
def test_malformed_manifest(make_project, editor, edmx_service):
    """
    MAN-005: Required manifest content is checked

    Given: A manifest that is not valid JSON
    When: Updating the manifest
    Then: The JSON error propagates
    """
    root = make_project()
    with open(os.path.join(root, "webapp", "manifest.json"), "w") as f:
        f.write("{ not json")

    with pytest.raises(json.JSONDecodeError):
        _add(root, editor, edmx_service)


# ============================================================================
# Remove
# ============================================================================


@pytest.mark.manifest
def test_remove_service(make_project, editor, manifest_data):
    """
    MAN-006: Removal deletes the service, unshared annotations and models

    Given: mainService with its annotation and default model
    When: Removing mainService
    Then: Data sources and model are gone and the local files are reported
    """
    root = _flat_project(make_project, manifest_data)

    local_uris = delete_service_from_manifest(root, "mainService", editor)

    manifest = read_manifest(editor, root)
    assert manifest["sap.app"]["dataSources"] == {}
    assert "" not in manifest["sap.ui5"]["models"]
    assert "i18n" in manifest["sap.ui5"]["models"]
    assert local_uris == ["localService/metadata.xml", f"localService/{ANNOTATION_NAME}.xml"]


@pytest.mark.manifest
def test_remove_keeps_shared_and_local_annotations(make_project, editor, manifest_data):
    """
    MAN-006: Removal deletes the service, unshared annotations and models

    Given: Two services sharing an annotation, one with local annotations
    When: Removing that service
    Then: The shared and the local annotation data sources stay
    """
    data_sources = manifest_data["sap.app"]["dataSources"]
    data_sources["first"] = {
        "uri": "/sap/first/",
        "type": "OData",
        "settings": {"annotations": ["shared", "annotation"], "localUri": "localService/first/metadata.xml"},
    }
    data_sources["second"] = {
        "uri": "/sap/second/",
        "type": "OData",
        "settings": {"annotations": ["shared"], "localUri": "localService/second/metadata.xml"},
    }
    data_sources["shared"] = {
        "uri": "/sap/shared/$value/",
        "type": "ODataAnnotation",
        "settings": {"localUri": "localService/first/shared.xml"},
    }
    data_sources["annotation"] = {
        "uri": "annotations/annotation.xml",
        "type": "ODataAnnotation",
        "settings": {"localUri": "annotations/annotation.xml"},
    }
    root = make_project(manifest=manifest_data)

    local_uris = delete_service_from_manifest(root, "first", editor)

    remaining = read_manifest(editor, root)["sap.app"]["dataSources"]
    assert sorted(remaining) == ["annotation", "second", "shared"]
    assert local_uris == ["localService/first/metadata.xml"]


@pytest.mark.manifest
def test_remove_unknown_service(make_project, editor, manifest_data):
    """
    MAN-006: Removal deletes the service, unshared annotations and models

    Given: A manifest with mainService
    When: Removing a service that does not exist
    Then: Nothing is staged
    """
    root = _flat_project(make_project, manifest_data)

    assert delete_service_from_manifest(root, "dummy", editor) is None
    assert editor.pending() == {}

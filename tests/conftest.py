import pytest

from xcode_diag_mcp_server import config, security


@pytest.fixture(autouse=True)
def restore_settings():
    """Tools and the CLI write module-level settings; put them back after each test"""
    saved = (
        config.DEBUG_ENABLED,
        config.BUILD_WARNINGS_ENABLED,
        config.BUILD_WARNINGS_FORCED,
        config.CRASH_REPORTS_DIR,
        config.DERIVED_DATA_DIR,
        set(security.ALLOWED_FOLDERS),
    )
    yield
    (config.DEBUG_ENABLED,
     config.BUILD_WARNINGS_ENABLED,
     config.BUILD_WARNINGS_FORCED,
     config.CRASH_REPORTS_DIR,
     config.DERIVED_DATA_DIR) = saved[:5]
    security.set_allowed_folders(saved[5])


@pytest.fixture
def allowed_tmp(tmp_path):
    security.set_allowed_folders({str(tmp_path)})
    return tmp_path


SCHEME_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<Scheme LastUpgradeVersion = "1500" version = "1.7">
   <BuildAction parallelizeBuildables = "YES">
   </BuildAction>
   <TestAction buildConfiguration = "Debug">
      <Testables>
{testables}
      </Testables>
   </TestAction>
</Scheme>
"""

TESTABLE_TEMPLATE = """         <TestableReference skipped = "NO">
            <BuildableReference
               BuildableIdentifier = "primary"
               BlueprintIdentifier = "ABC123"
               BuildableName = "{target}.xctest"
               BlueprintName = "{target}"
               ReferencedContainer = "container:App.xcodeproj">
            </BuildableReference>
         </TestableReference>"""


def scheme_xml(test_targets):
    testables = "\n".join(TESTABLE_TEMPLATE.format(target=t) for t in test_targets)
    return SCHEME_TEMPLATE.format(testables=testables)


@pytest.fixture
def make_project(tmp_path):
    """
    Create <tmp>/App.xcodeproj with the given schemes.

    make_project({"TestApp": ["TestAppUITests"]}, user_schemes={"Mine": [...]})
    returns the .xcodeproj path as a string.
    """
    def _make(schemes, user_schemes=None, name="App.xcodeproj", root=None):
        project = (root or tmp_path) / name
        shared = project / "xcshareddata" / "xcschemes"
        shared.mkdir(parents=True, exist_ok=True)
        for scheme_name, targets in schemes.items():
            (shared / f"{scheme_name}.xcscheme").write_text(scheme_xml(targets))
        if user_schemes:
            user_dir = project / "xcuserdata" / "dev.xcuserdatad" / "xcschemes"
            user_dir.mkdir(parents=True, exist_ok=True)
            for scheme_name, targets in user_schemes.items():
                (user_dir / f"{scheme_name}.xcscheme").write_text(scheme_xml(targets))
        return str(project)

    return _make

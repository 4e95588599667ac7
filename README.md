# webtestlauncher

Building blocks for running browser tests under a build system:

- **Metadata** describing a browser (capabilities, environment, labels,
  named files), read from JSON, merged and written back out
  (`webtestlauncher.metadata`).
- **WebDriver capabilities** handling: normalising new-session arguments,
  merging capability sets, and producing W3C, JSON Wire Protocol or
  mixed-mode session requests (`webtestlauncher.capabilities`,
  `webtestlauncher.merging`).
- A small **WebDriver client** for creating sessions, running scripts,
  taking screenshots and managing windows and frames
  (`webtestlauncher.webdriver`, `webtestlauncher.protocol`,
  `webtestlauncher.webdriver_errors`).
- Utilities for runfile lookup (`webtestlauncher.bazel`), child-process
  environments (`webtestlauncher.cmdhelper`), health polling
  (`webtestlauncher.healthreporter`), HTTP forwarding
  (`webtestlauncher.httphelper`) and component-tagged errors
  (`webtestlauncher.errors`).

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Merging metadata

Metadata files are read with `metadata.from_file`, combined with
`metadata.merge` (values from the second argument take precedence) and
written with `Metadata.to_file`:

```python
from webtestlauncher import metadata

base = metadata.from_file("base.json", None)
chrome = metadata.from_file("chrome.json", None)
merged = metadata.merge(base, chrome)
merged.to_file("merged.json")
```

Named files listed under `webTestFiles` are found with
`Metadata.get_file_path(name)`; files inside an archive are extracted on
first use with the program named by the `EXTRACT_EXE` entry.

## Capabilities

```python
from webtestlauncher.capabilities import Capabilities

caps = Capabilities.from_new_session_args({
    "desiredCapabilities": {"browserName": "chrome"},
})
request_body = caps.to_mixed_mode()
```

Capability values can contain `%PREFIX:NAME%` placeholders, filled in with
`Capabilities.resolve` and a resolver such as `merging.map_resolver(...)`
or the one returned by `Metadata.resolver()`, which handles the `ENV`,
`FILE`, `WTL` and `METADATA` prefixes.

## Talking to a WebDriver server

```python
from webtestlauncher.webdriver import create_session

driver = create_session("http://localhost:4444/wd/hub/", 3, None)
try:
    agent = driver.execute_script("return navigator.userAgent", [])
    image = driver.screenshot()
finally:
    driver.quit()
```

Errors reported by the remote end are raised as
`webtestlauncher.webdriver_errors.WebDriverError`, carrying the WebDriver
status, error name and HTTP status; `marshal_error` turns any exception
into a WebDriver JSON response body.

## What this package does not do

- There is no command-line tool: merging metadata files is done from
  Python code as shown above.
- There is no helper for picking free TCP ports.
"""
Stealth init scripts for rendered scrapes.

These scripts hide automation signals that bot detectors check for. They are
installed on every isolated browsing context before navigation.
"""

import logging

logger = logging.getLogger(__name__)


STEALTH_SCRIPTS = {
    "webdriver": """
        // Hide navigator.webdriver
        try {
            const proto = Object.getPrototypeOf(navigator);
            if (proto.hasOwnProperty('webdriver')) {
                delete proto.webdriver;
            }
            Object.defineProperty(navigator, 'webdriver', {
                get: () => false,
                configurable: true
            });
        } catch (e) {}
    """,
    "chrome_runtime": """
        // Add window.chrome with runtime
        try {
            if (!window.chrome) {
                Object.defineProperty(window, 'chrome', {
                    writable: true,
                    enumerable: true,
                    configurable: false,
                    value: {
                        runtime: {
                            app: {
                                isInstalled: false,
                                InstallState: { DISABLED: 'disabled', INSTALLED: 'installed', NOT_INSTALLED: 'not_installed' },
                                RunningState: { CANNOT_RUN: 'cannot_run', READY_TO_RUN: 'ready_to_run', RUNNING: 'running' }
                            }
                        },
                        loadTimes: function() {},
                        csi: function() {}
                    }
                });
            }
        } catch (e) {}
    """,
    "plugins": """
        // Add realistic plugins and mimeTypes
        try {
            if (!navigator.plugins || navigator.plugins.length === 0) {
                const mkPlugin = (name) => {
                    const plugin = { name, description: name, filename: name + '.dll', length: 1 };
                    plugin[0] = { type: 'application/x-google-chrome-pdf', suffixes: 'pdf', description: 'Portable Document Format', enabledPlugin: plugin };
                    return plugin;
                };
                const plugins = [mkPlugin('Chrome PDF Plugin'), mkPlugin('Chrome PDF Viewer'), mkPlugin('Native Client')];
                plugins.item = function(index) { return this[index]; };
                plugins.namedItem = function(name) { return this.find(p => p.name === name); };
                plugins.refresh = function() {};
                Object.defineProperty(Navigator.prototype, 'plugins', { get: () => plugins, configurable: true, enumerable: true });
                Object.defineProperty(Navigator.prototype, 'mimeTypes', {
                    get: () => {
                        const mimeTypes = [{ type: 'application/pdf', suffixes: 'pdf', description: 'Portable Document Format', enabledPlugin: plugins[0] }];
                        mimeTypes.item = function(index) { return this[index]; };
                        mimeTypes.namedItem = function(type) { return this.find(m => m.type === type); };
                        return mimeTypes;
                    },
                    configurable: true,
                    enumerable: true
                });
            }
        } catch (e) {}
    """,
    "permissions": """
        // Override permissions query to return realistic responses
        try {
            if (navigator.permissions && navigator.permissions.query) {
                const originalQuery = navigator.permissions.query;
                navigator.permissions.query = (parameters) => (
                    parameters.name === 'notifications' ?
                        Promise.resolve({ state: 'denied', onchange: null }) :
                        originalQuery(parameters)
                );
            }
        } catch (e) {}
    """,
    "webgl_vendor": """
        // Set realistic WebGL vendor/renderer
        try {
            const getParameter = WebGLRenderingContext.prototype.getParameter;
            WebGLRenderingContext.prototype.getParameter = function(parameter) {
                if (parameter === 37445) {
                    return 'Intel Inc.';
                }
                if (parameter === 37446) {
                    return 'Intel Iris OpenGL Engine';
                }
                return getParameter.apply(this, arguments);
            };
        } catch (e) {}
    """,
    # Bundlers emit __name() helpers that break page.evaluate in some builds
    "name_shim": "window.__name = (f) => f;",
}

# Combined stealth script for injection
COMBINED_STEALTH_SCRIPT = "\n".join(
    "(() => {" + script + "})();" for script in STEALTH_SCRIPTS.values()
)


async def apply_stealth(context) -> None:
    """Install the stealth scripts on a browser context."""
    await context.add_init_script(script=COMBINED_STEALTH_SCRIPT)
    logger.debug("[Stealth] Init scripts installed")

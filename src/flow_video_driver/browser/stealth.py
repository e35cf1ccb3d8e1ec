"""Fingerprint overrides injected into every page of the shared context."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

LOGGER = logging.getLogger(__name__)

_GUARD_FLAG = "__flowStealthApplied"

_SCRIPT_TEMPLATE = """
(() => {
  const profile = %(profile)s;
  if (window[%(guard)s]) {
    return;
  }
  Object.defineProperty(window, %(guard)s, { value: true, enumerable: false });

  Object.defineProperty(navigator, 'webdriver', { get: () => false, configurable: true });
  try {
    delete Object.getPrototypeOf(navigator).webdriver;
  } catch (e) {}

  Object.defineProperty(navigator, 'plugins', {
    get: () => {
      const pluginArray = Object.create(PluginArray.prototype);
      profile.plugins.forEach((p, i) => {
        const plugin = Object.create(Plugin.prototype);
        Object.defineProperties(plugin, {
          name: { value: p.name },
          filename: { value: p.filename },
          description: { value: p.description },
          length: { value: 0 },
        });
        pluginArray[i] = plugin;
      });
      Object.defineProperty(pluginArray, 'length', { value: profile.plugins.length });
      return pluginArray;
    },
  });
  Object.defineProperty(navigator, 'languages', { get: () => profile.languages });
  Object.defineProperty(navigator, 'platform', { get: () => profile.platform });
  Object.defineProperty(navigator, 'vendor', { get: () => profile.vendor });
  Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => profile.hardwareConcurrency });
  Object.defineProperty(navigator, 'deviceMemory', { get: () => profile.deviceMemory });

  const now = () => Date.now() / 1000;
  window.chrome = {
    runtime: {
      connect: () => {},
      sendMessage: () => {},
      onMessage: { addListener: () => {} },
      PlatformOs: { MAC: 'mac', WIN: 'win', ANDROID: 'android', CROS: 'cros', LINUX: 'linux', OPENBSD: 'openbsd' },
    },
    loadTimes: () => ({
      requestTime: now(),
      startLoadTime: now(),
      commitLoadTime: now(),
      finishDocumentLoadTime: now(),
      finishLoadTime: now(),
      firstPaintTime: now(),
      firstPaintAfterLoadTime: 0,
      navigationType: 'Other',
      wasFetchedViaSpdy: false,
      wasNpnNegotiated: true,
      npnNegotiatedProtocol: 'h2',
      wasAlternateProtocolAvailable: false,
      connectionInfo: 'h2',
    }),
    csi: () => ({ onloadT: Date.now(), pageT: 1000, startE: Date.now(), tran: 15 }),
    app: {
      isInstalled: false,
      InstallState: { DISABLED: 'disabled', INSTALLED: 'installed', NOT_INSTALLED: 'not_installed' },
      RunningState: { CANNOT_RUN: 'cannot_run', READY_TO_RUN: 'ready_to_run', RUNNING: 'running' },
    },
  };

  const permissions = navigator.permissions;
  if (permissions && permissions.query) {
    const originalQuery = permissions.query.bind(permissions);
    permissions.query = (parameters) => (
      parameters && parameters.name === profile.deniedPermission
        ? Promise.resolve({ state: 'denied', onchange: null })
        : originalQuery(parameters)
    );
  }

  const patchGetParameter = (proto) => {
    if (!proto || !proto.getParameter) {
      return;
    }
    const original = proto.getParameter;
    proto.getParameter = new Proxy(original, {
      apply(target, thisArg, args) {
        if (args[0] === 37445) return profile.webglVendor;
        if (args[0] === 37446) return profile.webglRenderer;
        return Reflect.apply(target, thisArg, args);
      },
    });
  };
  try {
    patchGetParameter(window.WebGLRenderingContext && WebGLRenderingContext.prototype);
    patchGetParameter(window.WebGL2RenderingContext && WebGL2RenderingContext.prototype);
  } catch (e) {}

  const originalToString = Function.prototype.toString;
  const patchedToString = function toString() {
    if (this === patchedToString) {
      return 'function toString() { [native code] }';
    }
    return originalToString.call(this);
  };
  Function.prototype.toString = patchedToString;
})();
"""


def _default_plugins() -> list[dict[str, str]]:
    return [
        {"name": "Chrome PDF Plugin", "filename": "internal-pdf-viewer", "description": "Portable Document Format"},
        {"name": "Chrome PDF Viewer", "filename": "mhjfbmdgcfjbbpaeojofohoefgiehjai", "description": ""},
        {"name": "Native Client", "filename": "internal-nacl-plugin", "description": ""},
    ]


@dataclass(frozen=True)
class StealthProfile:
    """Values reported to the page in place of the automation browser's own."""

    languages: tuple[str, ...] = ("en-US", "en", "id")
    platform: str = "Win32"
    vendor: str = "Google Inc."
    hardware_concurrency: int = 8
    device_memory: int = 8
    webgl_vendor: str = "Google Inc. (NVIDIA)"
    webgl_renderer: str = (
        "ANGLE (NVIDIA, NVIDIA GeForce GTX 1660 SUPER Direct3D11 vs_5_0 ps_5_0, D3D11)"
    )
    denied_permission: str = "notifications"
    plugins: tuple[dict[str, str], ...] = field(default_factory=lambda: tuple(_default_plugins()))

    def as_json(self) -> dict[str, Any]:
        return {
            "languages": list(self.languages),
            "platform": self.platform,
            "vendor": self.vendor,
            "hardwareConcurrency": self.hardware_concurrency,
            "deviceMemory": self.device_memory,
            "webglVendor": self.webgl_vendor,
            "webglRenderer": self.webgl_renderer,
            "deniedPermission": self.denied_permission,
            "plugins": list(self.plugins),
        }

    def render_script(self) -> str:
        """Return the init script applying this profile.

        The script sets a window flag on first run and returns early afterwards,
        so evaluating it more than once in the same document is harmless.
        """

        return _SCRIPT_TEMPLATE % {
            "profile": json.dumps(self.as_json()),
            "guard": json.dumps(_GUARD_FLAG),
        }


async def apply_stealth(context: Any, profile: StealthProfile | None = None) -> None:
    """Register the stealth init script on ``context`` so every new page inherits it."""

    profile = profile or StealthProfile()
    LOGGER.debug("Injecting stealth profile into browser context")
    await context.add_init_script(script=profile.render_script())

"""Page-side scripts exchanged with the page controller through ``evaluate``.

Every script is a single-argument arrow function. Arguments and return values
are plain JSON data; no closures or handles cross the boundary.
"""

from __future__ import annotations

_FINGERPRINT_JS = """
  const fingerprint = (el) => {
    const xpathOf = (node) => {
      if (node.id) return `//*[@id="${node.id}"]`;
      const parts = [];
      while (node && node.nodeType === Node.ELEMENT_NODE) {
        let position = 1;
        let sibling = node.previousElementSibling;
        while (sibling) {
          if (sibling.tagName === node.tagName) position += 1;
          sibling = sibling.previousElementSibling;
        }
        parts.unshift(`${node.tagName.toLowerCase()}[${position}]`);
        node = node.parentElement;
      }
      return '/' + parts.join('/');
    };
    return {
      tagName: el.tagName || '',
      id: el.id || '',
      className: typeof el.className === 'string' ? el.className : '',
      textContent: (el.textContent || '').trim().substring(0, 100),
      name: el.name || el.getAttribute?.('name') || '',
      type: el.type || '',
      placeholder: el.placeholder || '',
      xpath: xpathOf(el),
    };
  };
"""

RECORDER_INSTALL = (
    "(args) => {\n"
    "  if (window.__formflowRecorder) return { installed: false, url: window.location.href };\n"
    + _FINGERPRINT_JS
    + """
  const state = { buffer: [], listeners: [] };
  const push = (type, el, data) => {
    state.buffer.push({
      timestamp: Date.now(),
      type,
      element: fingerprint(el),
      data: data || null,
      url: window.location.href,
    });
  };
  const on = (name, handler) => {
    document.addEventListener(name, handler, true);
    state.listeners.push([name, handler]);
  };
  on('click', (event) => {
    const target = event.target;
    if (target && target.nodeType === Node.ELEMENT_NODE) push('click', target, null);
  });
  on('input', (event) => {
    const target = event.target;
    if (!target || target.tagName === 'SELECT') return;
    push('input', target, { value: target.value, inputType: target.type || '' });
  });
  on('change', (event) => {
    const target = event.target;
    if (!target || target.tagName !== 'SELECT') return;
    const option = target.options[target.selectedIndex];
    push('select', target, { selectedValue: target.value, selectedText: option ? option.text : '' });
  });
  const namedKeys = new Set(args.keys || ['Tab', 'Enter', 'Escape']);
  on('keydown', (event) => {
    const modified = event.ctrlKey || event.metaKey || event.altKey;
    if (!namedKeys.has(event.key) && !(modified && event.key.length === 1)) return;
    const combo = [];
    if (event.ctrlKey) combo.push('Control');
    if (event.metaKey) combo.push('Meta');
    if (event.altKey) combo.push('Alt');
    if (event.shiftKey && namedKeys.has(event.key)) combo.push('Shift');
    combo.push(event.key);
    push('keypress', event.target || document.body, { key: combo.join('+'), keyCode: event.keyCode });
  });
  window.__formflowRecorder = state;
  return { installed: true, url: window.location.href };
}"""
)

RECORDER_DRAIN = """() => {
  const state = window.__formflowRecorder;
  if (!state) return { installed: false, url: window.location.href, actions: [] };
  const actions = state.buffer;
  state.buffer = [];
  return { installed: true, url: window.location.href, actions };
}"""

RECORDER_UNINSTALL = """() => {
  const state = window.__formflowRecorder;
  if (!state) return false;
  for (const [name, handler] of state.listeners) document.removeEventListener(name, handler, true);
  delete window.__formflowRecorder;
  return true;
}"""

OBSERVER_INSTALL = """(args) => {
  const existing = window.__formflowObserver;
  if (existing) existing.observer.disconnect();
  const container = document.querySelector(args.container || 'body');
  if (!container) return { installed: false };
  const state = { buffer: [], counter: existing ? existing.counter : 0, observer: null };
  const FORM_TAGS = ['INPUT', 'TEXTAREA', 'SELECT', 'BUTTON'];
  const labelFor = (el) => {
    if (el.id) {
      const label = document.querySelector(`label[for="${el.id}"]`);
      if (label) return label.textContent.trim();
    }
    const wrapping = el.closest('label');
    if (wrapping) return wrapping.textContent.trim();
    return el.getAttribute('aria-label') || '';
  };
  const describe = (el) => {
    if (!el.dataset.formflowId) {
      state.counter += 1;
      el.dataset.formflowId = `ff-${state.counter}`;
    }
    return {
      token: el.dataset.formflowId,
      tagName: el.tagName,
      type: el.type || '',
      name: el.name || '',
      id: el.id || '',
      placeholder: el.placeholder || '',
      textContent: (el.textContent || '').trim() || labelFor(el),
      className: typeof el.className === 'string' ? el.className : '',
      required: Boolean(el.required),
    };
  };
  const observer = new MutationObserver((mutations) => {
    const found = [];
    for (const mutation of mutations) {
      if (mutation.type === 'childList') {
        mutation.addedNodes.forEach((node) => {
          if (node.nodeType !== Node.ELEMENT_NODE) return;
          if (FORM_TAGS.includes(node.tagName)) found.push(node);
          found.push(...node.querySelectorAll('input, textarea, select, button'));
        });
      } else if (mutation.type === 'attributes' && ['INPUT', 'TEXTAREA', 'SELECT'].includes(mutation.target.tagName)) {
        found.push(mutation.target);
      }
    }
    for (const el of new Set(found)) state.buffer.push(describe(el));
  });
  observer.observe(container, {
    childList: true,
    subtree: true,
    attributes: true,
    attributeFilter: ['class', 'style', 'disabled', 'required', 'type', 'name'],
  });
  state.observer = observer;
  window.__formflowObserver = state;
  return { installed: true };
}"""

OBSERVER_DRAIN = """() => {
  const state = window.__formflowObserver;
  if (!state) return { installed: false, fields: [] };
  const fields = state.buffer;
  state.buffer = [];
  return { installed: true, fields };
}"""

OBSERVER_UNINSTALL = """() => {
  const state = window.__formflowObserver;
  if (!state) return false;
  state.observer.disconnect();
  delete window.__formflowObserver;
  return true;
}"""

FILL_BY_TOKEN = """(args) => {
  const el = document.querySelector(`[data-formflow-id="${args.token}"]`);
  if (!el) return false;
  el.value = args.value;
  el.dispatchEvent(new Event('input', { bubbles: true }));
  el.dispatchEvent(new Event('change', { bubbles: true }));
  return true;
}"""

SNAPSHOT_STATE = """() => {
  const selector = 'input, textarea, select, button, a[href], [role="button"]';
  const nodes = Array.from(document.querySelectorAll(selector));
  return nodes.map((el, index) => {
    el.setAttribute('data-formflow-index', String(index));
    const attributes = {};
    for (const attr of el.attributes) attributes[attr.name] = attr.value;
    const style = window.getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    const visible = style.visibility !== 'hidden' && style.display !== 'none' && rect.width > 0 && rect.height > 0;
    return {
      index,
      tag: el.tagName.toLowerCase(),
      attributes,
      text: (el.innerText || el.value || '').trim().substring(0, 200),
      interactable: visible && !el.disabled,
    };
  });
}"""

__all__ = [
    "RECORDER_INSTALL",
    "RECORDER_DRAIN",
    "RECORDER_UNINSTALL",
    "OBSERVER_INSTALL",
    "OBSERVER_DRAIN",
    "OBSERVER_UNINSTALL",
    "FILL_BY_TOKEN",
    "SNAPSHOT_STATE",
]

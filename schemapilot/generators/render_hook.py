"""
Client data hook rendering.
Generates a React hook (TypeScript) that talks to the generated endpoint.
"""
from typing import Optional

from schemapilot.generators.render_endpoint import route_path
from schemapilot.generators.types import ArtifactKind, GeneratedArtifact, artifact_path
from schemapilot.generators.utils import derive_identifiers


_HOOK_TEMPLATE = '''/**
 * Data hook for __TABLE__ (generated by schemapilot)
 */
import { useCallback, useEffect, useState } from 'react';

export type __TYPE__Record = {
  id: number;
  createdAt: string;
  updatedAt: string;
  [field: string]: unknown;
};

export type __TYPE__Input = Omit<Partial<__TYPE__Record>, 'id' | 'createdAt' | 'updatedAt'>;

const ENDPOINT = '__ROUTE__';

async function request<T>(url: string, init?: RequestInit): Promise<T> {
  const response = await fetch(url, {
    ...init,
    headers: { 'Content-Type': 'application/json', ...(init?.headers || {}) },
  });
  const payload = await response.json().catch(() => null);
  if (!response.ok) {
    const message = payload && payload.error ? payload.error : `HTTP ${response.status}`;
    throw new Error(message);
  }
  return payload as T;
}

export function __HOOK__() {
  const [data, setData] = useState<__TYPE__Record[]>([]);
  const [loading, setLoading] = useState<boolean>(true);
  const [error, setError] = useState<string | null>(null);

  const refetch = useCallback(async () => {
    setError(null);
    try {
      const rows = await request<__TYPE__Record[]>(ENDPOINT);
      setData(rows);
    } catch (err) {
      setError(err instanceof Error ? err.message : 'An error occurred');
    } finally {
      setLoading(false);
    }
  }, []);

  // Local state changes only after the server confirmed the write.
  const create = useCallback(async (item: __TYPE__Input) => {
    setError(null);
    try {
      const created = await request<__TYPE__Record>(ENDPOINT, {
        method: 'POST',
        body: JSON.stringify(item),
      });
      setData(prev => [...prev, created]);
      return created;
    } catch (err) {
      setError(err instanceof Error ? err.message : 'An error occurred');
      throw err;
    }
  }, []);

  const update = useCallback(async (id: number, changes: __TYPE__Input) => {
    setError(null);
    try {
      const updated = await request<__TYPE__Record>(`${ENDPOINT}?id=${id}`, {
        method: 'PUT',
        body: JSON.stringify(changes),
      });
      setData(prev => prev.map(item => (item.id === id ? updated : item)));
      return updated;
    } catch (err) {
      setError(err instanceof Error ? err.message : 'An error occurred');
      throw err;
    }
  }, []);

  const remove = useCallback(async (id: number) => {
    setError(null);
    try {
      await request<{ success: boolean }>(`${ENDPOINT}?id=${id}`, { method: 'DELETE' });
      setData(prev => prev.filter(item => item.id !== id));
    } catch (err) {
      setError(err instanceof Error ? err.message : 'An error occurred');
      throw err;
    }
  }, []);

  useEffect(() => {
    refetch();
  }, [refetch]);

  return {
    data,
    loading,
    error,
    refetch,
    create,
    update,
    delete: remove,
  };
}
'''


def render_hook(entity_name: str, route: Optional[str] = None) -> str:
    """Generate the React data hook for an entity."""
    ids = derive_identifiers(entity_name)
    replacements = {
        "__TABLE__": ids.canonical_name,
        "__TYPE__": ids.type_name,
        "__HOOK__": ids.hook_name,
        "__ROUTE__": route_path(entity_name, route),
    }
    content = _HOOK_TEMPLATE
    for token, value in replacements.items():
        content = content.replace(token, value)
    return content


def compile_hook(entity_name: str, route: Optional[str] = None) -> GeneratedArtifact:
    ids = derive_identifiers(entity_name)
    return GeneratedArtifact(
        kind=ArtifactKind.HOOK,
        entity=ids.canonical_name,
        target_path=artifact_path(ids.canonical_name, ArtifactKind.HOOK),
        content=render_hook(entity_name, route),
    )

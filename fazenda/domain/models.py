"""
Modelos (dataclasses) do domínio.

Observação importante:
- Os documentos são dicionários com as chaves já usadas pelas coleções
  (camelCase: `stock`, `minStock`, `selectedProducts`...). As dataclasses
  daqui são comandos/patches explícitos por operação; os casos de uso
  aceitam tanto dicionários quanto estas dataclasses.
- `para_patch()` devolve apenas os campos informados, já com as chaves
  do documento.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fazenda.domain.policies import para_iso, quantidade_nao_negativa


def _sem_nulos(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass
class AtualizacaoProduto:
    """Patch de produto: só os campos preenchidos são gravados."""
    nome: Optional[str] = None
    categoria: Optional[str] = None
    unidade: Optional[str] = None
    estoque: Optional[float] = None
    estoque_minimo: Optional[float] = None
    custo: Optional[float] = None
    preco: Optional[float] = None
    codigo: Optional[str] = None
    numero_lote: Optional[str] = None
    deposito_id: Optional[str] = None
    campo_id: Optional[str] = None
    data_validade: Optional[date] = None
    status: Optional[str] = None
    notas: Optional[str] = None

    def para_patch(self) -> Dict[str, Any]:
        for nome, valor in (("estoque", self.estoque), ("estoque_minimo", self.estoque_minimo)):
            if valor is not None and float(valor) < 0:
                raise ValueError(f"{nome} não pode ser negativo: {valor}")
        return _sem_nulos({
            "name": self.nome,
            "category": self.categoria,
            "unit": self.unidade,
            "stock": self.estoque,
            "minStock": self.estoque_minimo,
            "cost": self.custo,
            "price": self.preco,
            "code": self.codigo,
            "lotNumber": self.numero_lote,
            "warehouseId": self.deposito_id,
            "fieldId": self.campo_id,
            "expiryDate": para_iso(self.data_validade),
            "status": self.status,
            "notes": self.notas,
        })


@dataclass
class ConclusaoFumigacao:
    """Dados opcionais informados ao concluir uma fumigação."""
    inicio: Optional[datetime] = None
    fim: Optional[datetime] = None
    condicoes_climaticas: Optional[Dict[str, Any]] = None
    notas: Optional[str] = None

    def para_patch(self) -> Dict[str, Any]:
        if all(v is None for v in (self.inicio, self.fim, self.condicoes_climaticas, self.notas)):
            return {}
        patch: Dict[str, Any] = {
            "weatherConditions": self.condicoes_climaticas or {},
            "completionNotes": self.notas or "",
        }
        if self.inicio is not None:
            patch["startDateTime"] = para_iso(self.inicio)
        if self.fim is not None:
            patch["endDateTime"] = para_iso(self.fim)
        return patch


@dataclass
class ProdutoColhido:
    """Produto obtido numa colheita; vira um produto novo no estoque."""
    nome: str
    quantidade: float
    unidade: Optional[str] = None
    categoria: Optional[str] = None
    deposito_id: Optional[str] = None
    nivel_armazenamento: Optional[str] = None
    valor_estimado: Optional[float] = None
    notas: Optional[str] = None

    def para_doc(self) -> Dict[str, Any]:
        return _sem_nulos({
            "name": self.nome,
            "quantity": quantidade_nao_negativa(self.quantidade, self.nome),
            "unit": self.unidade,
            "category": self.categoria,
            "warehouseId": self.deposito_id,
            "storageLevel": self.nivel_armazenamento,
            "estimatedValue": self.valor_estimado,
            "notes": self.notas,
        })


@dataclass
class ConclusaoColheita:
    """Dados de conclusão de uma colheita."""
    rendimento_real: Optional[float] = None
    total_colhido: Optional[float] = None
    data_colheita: Optional[datetime] = None
    produtos_colhidos: List[ProdutoColhido] = field(default_factory=list)
    notas_qualidade: Optional[str] = None
    condicoes_climaticas: Optional[str] = None

    def para_patch(self) -> Dict[str, Any]:
        patch = _sem_nulos({
            "actualYield": self.rendimento_real,
            "totalHarvested": self.total_colhido,
            "harvestDate": para_iso(self.data_colheita),
            "qualityNotes": self.notas_qualidade or None,
            "weatherConditions": self.condicoes_climaticas or None,
        })
        if self.produtos_colhidos:
            patch["harvestedProducts"] = [p.para_doc() for p in self.produtos_colhidos]
        return patch
